"""
utils.py

Path utilities and helper functions.

This module provides:
- Playlist id validation
- Report path generation
- Atomic JSON writes
- RFC 3339 timestamp parsing
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from streamkeeper import config
from streamkeeper.env.paths import out_file

# ============================================================
# Path Validation
# ============================================================


def validate_playlist_id(playlist_id: str) -> None:
    """
    Validate playlist ID format to prevent path traversal.

    Raises:
        ValueError: If playlist_id is empty or contains invalid characters
    """
    if not playlist_id or not re.match(r"^[A-Za-z0-9_-]+$", playlist_id):
        raise ValueError(
            f"Invalid playlist_id: {playlist_id!r}. "
            f"Must contain only alphanumeric characters, hyphens, and underscores."
        )


# ============================================================
# Path Generators
# ============================================================


def reconcile_report_path(playlist_id: str) -> Path:
    """
    Get the plan/report file path for a playlist.

    Raises:
        ValueError: If playlist_id is invalid
    """
    validate_playlist_id(playlist_id)
    return out_file(config.RECONCILE_REPORT_BASENAME.format(playlist_id=playlist_id))


# ============================================================
# File I/O Helpers
# ============================================================


def write_json(path: Path, data: Any) -> None:
    """
    Write data to a JSON file via a temp file and an atomic rename.

    Raises:
        TypeError: If data is not JSON serializable
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)

    tmp_path.replace(path)


# ============================================================
# Time
# ============================================================


def parse_rfc3339(value: Any) -> Optional[datetime]:
    """
    Parse YouTube's RFC 3339 timestamps ("2024-03-10T10:30:00Z").

    Returns an aware UTC datetime, or None for missing/garbled values.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().replace("Z", "+00:00")
    # fromisoformat rejects fractional seconds that are not 3 or 6 digits on older Pythons
    m = re.match(r"^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$", text)
    if m:
        text = f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}{m.group(3)}"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(dt: Optional[datetime]) -> str:
    if dt is None:
        return "-"
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
