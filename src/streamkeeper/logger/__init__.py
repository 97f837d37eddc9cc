"""
Process-wide logging.

Handlers live on the root logger only; module loggers propagate. Each
command writes one file per run under <logs>/<command>/.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from streamkeeper.env import get_logging_env
from streamkeeper.env.paths import module_logs_dir

from .handlers import RunContextFilter, console_handler, file_handler, prune_logs

NOISY_LOGGERS = {
    "googleapiclient.discovery_cache": logging.ERROR,
    "googleapiclient": logging.WARNING,
    "google": logging.WARNING,
    "urllib3": logging.WARNING,
}


@dataclass
class _LogState:
    run_id: Optional[str] = None
    log_file: Optional[Path] = None

    @property
    def initialized(self) -> bool:
        return self.log_file is not None


STATE = _LogState()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def reset_logging() -> None:
    """Detach every root handler and forget the current log file."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    STATE.run_id = None
    STATE.log_file = None


def _level(value: "str | int") -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _run_id() -> str:
    run_id = os.environ.get("STREAMKEEPER_RUN_ID")
    if not run_id:
        run_id = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        os.environ["STREAMKEEPER_RUN_ID"] = run_id
    return run_id


def init_logging() -> None:
    """
    Attach the file handler (always) and the Rich console handler (unless
    quiet). Calling it again after the command or run id changed repoints
    the existing file handler instead of stacking a second one.
    """
    env = get_logging_env()
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    command = os.environ.get("STREAMKEEPER_COMMAND") or "bootstrap"
    run_id = _run_id()
    logfile = module_logs_dir(command) / f"{command}-{run_id}.log"

    prune_logs(logfile.parent, int(env.log_retention))

    root = logging.getLogger()
    level = logging.DEBUG if env.verbose else _level(env.log_level)
    root.setLevel(level)

    if STATE.log_file == logfile:
        return

    previous = next((h for h in root.handlers if isinstance(h, logging.FileHandler)), None)
    root.handlers.clear()

    fh = file_handler(logfile, existing=previous)
    fh.filters.clear()
    fh.addFilter(RunContextFilter(run_id, os.environ.get("STREAMKEEPER_PLAYLIST_ID", "")))
    root.addHandler(fh)

    if not env.quiet:
        root.addHandler(console_handler(level))

    STATE.run_id = run_id
    STATE.log_file = logfile
