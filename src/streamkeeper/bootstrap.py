"""
Process bootstrap.

bootstrap_base_env() runs once at the entrypoint and folds config/.env
into os.environ. bootstrap_run_context() runs after argparse and stamps
the command line onto STREAMKEEPER_* variables, so that the pipeline,
the logger and `env dump` all read a single source.
"""

from __future__ import annotations

import argparse
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from streamkeeper.env import PROJECT_ROOT, apply_dotenv, reset_env_caches

_DOTENV_KEYS: Optional[List[str]] = None


def default_dotenv_path() -> Path:
    return Path(os.environ.get("STREAMKEEPER_DOTENV", str(PROJECT_ROOT / "config" / ".env")))


def bootstrap_base_env(dotenv_path: Optional[Path] = None) -> List[str]:
    """
    Apply the .env file (existing variables win) and pin a run id.
    Returns the keys taken from the file; later calls are no-ops.
    """
    global _DOTENV_KEYS
    if _DOTENV_KEYS is not None:
        return _DOTENV_KEYS

    _DOTENV_KEYS = apply_dotenv(dotenv_path or default_dotenv_path())
    os.environ.setdefault("STREAMKEEPER_RUN_ID", datetime.now().strftime("%Y-%m-%d_%H-%M-%S"))
    reset_env_caches()
    return _DOTENV_KEYS


def _flag(value: bool) -> str:
    return "1" if value else "0"


def run_context_from_args(args: argparse.Namespace) -> Dict[str, str]:
    """
    Command-line values that override the environment. Flags that were not
    given leave the environment (and .env) in charge.
    """
    ctx = {"STREAMKEEPER_COMMAND": args.command}

    playlist = getattr(args, "playlist", None)
    if playlist:
        ctx["STREAMKEEPER_PLAYLIST_ID"] = playlist
    keep = getattr(args, "keep", None)
    if keep is not None:
        ctx["STREAMKEEPER_KEEP_COUNT"] = str(keep)

    for attr, var in (
        ("dry_run", "STREAMKEEPER_DRY_RUN"),
        ("verbose", "STREAMKEEPER_VERBOSE"),
        ("quiet", "STREAMKEEPER_QUIET"),
    ):
        if getattr(args, attr, False):
            ctx[var] = _flag(True)
    return ctx


def bootstrap_run_context(args: argparse.Namespace) -> Dict[str, str]:
    ctx = run_context_from_args(args)
    os.environ.update(ctx)
    reset_env_caches()
    return ctx
