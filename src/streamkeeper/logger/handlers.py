"""
Handlers and filters attached to the root logger by init_logging().

File lines carry the run id and the playlist being reconciled so that
logs from scheduled runs can be grepped per playlist:

    2024-03-10 12:00:00 | INFO | 2024-03-10_12-00-00 | PLxyz | streamkeeper.runner | [plan] 3 operations
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.logging import RichHandler

from streamkeeper.env import get_logging_env

FILE_FORMAT = "%(asctime)s | %(levelname)s | %(run_id)s | %(playlist)s | %(name)s | %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class RunContextFilter(logging.Filter):
    """Stamps run_id and playlist onto records that don't already carry them."""

    def __init__(self, run_id: str, playlist: str = "-") -> None:
        super().__init__()
        self.run_id = run_id
        self.playlist = playlist or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = self.run_id
        if not hasattr(record, "playlist"):
            record.playlist = self.playlist
        return True


class QuietGate(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return not get_logging_env().quiet


def console_handler(level: int) -> logging.Handler:
    # sys.stdout is looked up now, not at import, so pytest capture works
    handler = RichHandler(
        console=Console(file=sys.stdout, soft_wrap=True),
        level=level,
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(QuietGate())
    return handler


def file_handler(logfile: Path, existing: "logging.FileHandler | None" = None) -> logging.FileHandler:
    """
    Open (or reopen, when `existing` is given) the per-run log file.
    """
    logfile.parent.mkdir(parents=True, exist_ok=True)

    if existing is None:
        handler = logging.FileHandler(logfile, encoding="utf-8")
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
        return handler

    existing.acquire()
    try:
        existing.close()
        existing.baseFilename = str(logfile)
        existing.stream = existing._open()
    finally:
        existing.release()
    return existing


def prune_logs(log_dir: Path, keep: int) -> List[Path]:
    """
    Keep the `keep` most recent run logs in log_dir. keep <= 0 disables
    pruning. Returns what was removed.
    """
    if keep <= 0 or not log_dir.is_dir():
        return []

    runs = sorted(log_dir.glob("*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    removed: List[Path] = []
    for stale in runs[keep:]:
        try:
            stale.unlink()
        except OSError:
            continue
        removed.append(stale)
    return removed
