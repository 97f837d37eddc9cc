from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------
# Project root
# ---------------------------------------------------------------------

# src/streamkeeper/env/paths.py -> project root is four levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


# ---------------------------------------------------------------------
# Base directories (override-friendly)
# ---------------------------------------------------------------------


def _resolve_dir(env_var: str, default: Path) -> Path:
    """
    Resolve a directory path from an environment variable or default.
    Ensures the directory exists.
    """
    raw = os.environ.get(env_var)
    path = Path(raw).expanduser().resolve() if raw else default
    path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    return _resolve_dir("STREAMKEEPER_LOGS_DIR", PROJECT_ROOT / "logs")


def auth_dir() -> Path:
    """OAuth client secrets and the credential cache."""
    return _resolve_dir("STREAMKEEPER_AUTH_DIR", PROJECT_ROOT / "auth")


def out_dir() -> Path:
    """Persisted plans and execution reports."""
    return _resolve_dir("STREAMKEEPER_OUT_DIR", PROJECT_ROOT / "out")


# ---------------------------------------------------------------------
# Utility / internal paths
# ---------------------------------------------------------------------


def auth_token_file(filename: str = "credentials.json") -> Path:
    return auth_dir() / filename


def auth_client_secrets_file(filename: str = "client_secret.json") -> Path:
    return auth_dir() / filename


def out_file(name: str) -> Path:
    return out_dir() / name


# ---------------------------------------------------------------------
# Log layout helpers
# ---------------------------------------------------------------------


def module_logs_dir(module: str) -> Path:
    """
    Base log directory for a CLI command (e.g. sync, auth).
    """
    path = logs_dir() / module
    path.mkdir(parents=True, exist_ok=True)
    return path
