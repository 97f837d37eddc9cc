"""
Runtime settings, read from os.environ.

Every setting is declared once in SETTINGS with its variable name, parser
and default. Unparseable numbers fall back to the default and are recorded
in Environment.warnings so the CLI can log them once logging is up;
values that would make a run unsafe raise ConfigError instead.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from streamkeeper import config


class ConfigError(RuntimeError):
    pass


# ------------------------------------------------------------
# .env files
# ------------------------------------------------------------


def read_dotenv(path: Path) -> Dict[str, str]:
    """
    KEY=value lines; '#' starts a comment (whole line, or after whitespace),
    matching single or double quotes around the value are stripped.
    """
    values: Dict[str, str] = {}
    if not path.is_file():
        return values

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = (part.strip() for part in line.split("=", 1))
        for marker in (" #", "\t#"):
            if marker in value:
                value = value.split(marker, 1)[0].rstrip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]

        if key:
            values[key] = value
    return values


def apply_dotenv(path: Path) -> List[str]:
    """Copy .env values into os.environ without overriding. Returns keys set."""
    applied = []
    for key, value in read_dotenv(path).items():
        if key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied


# ------------------------------------------------------------
# Parsers
# ------------------------------------------------------------


def _flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _keep_count(raw: str) -> Optional[int]:
    """Blank means keep every completed stream."""
    raw = raw.strip()
    if not raw:
        return None
    try:
        n = int(raw)
    except ValueError as e:
        raise ConfigError(f"STREAMKEEPER_KEEP_COUNT must be an integer, got {raw!r}") from e
    if n < 0:
        raise ConfigError(f"STREAMKEEPER_KEEP_COUNT must be >= 0, got {n}")
    return n


@dataclass(frozen=True)
class Setting:
    attr: str
    var: str
    parse: Callable[[str], Any]
    default: Any
    section: str
    lenient: bool = False


SETTINGS: Tuple[Setting, ...] = (
    Setting("log_level", "LOG_LEVEL", str.upper, "INFO", "Logging"),
    Setting("log_retention", "LOG_RETENTION", int, 30, "Logging", lenient=True),
    Setting("verbose", "STREAMKEEPER_VERBOSE", _flag, False, "Logging"),
    Setting("quiet", "STREAMKEEPER_QUIET", _flag, False, "Logging"),
    Setting("command", "STREAMKEEPER_COMMAND", str.strip, "bootstrap", "Run"),
    Setting("playlist_id", "STREAMKEEPER_PLAYLIST_ID", str.strip, "", "Run"),
    Setting("keep_count", "STREAMKEEPER_KEEP_COUNT", _keep_count, None, "Run"),
    Setting("dry_run", "STREAMKEEPER_DRY_RUN", _flag, False, "Run"),
    Setting(
        "max_retries", "STREAMKEEPER_MAX_RETRIES", int, config.DEFAULT_MAX_RETRIES, "Remote",
        lenient=True,
    ),
    Setting(
        "backoff_base_sec", "STREAMKEEPER_BACKOFF_BASE_SEC", float,
        config.DEFAULT_BACKOFF_BASE_SEC, "Remote", lenient=True,
    ),
    Setting(
        "mutation_sleep_sec", "STREAMKEEPER_MUTATION_SLEEP_SEC", float,
        config.DEFAULT_PLAYLIST_MUTATION_SLEEP_SEC, "Remote", lenient=True,
    ),
    Setting(
        "client_secrets_file", "STREAMKEEPER_CLIENT_SECRETS", str.strip,
        config.CLIENT_SECRETS_FILENAME, "Auth",
    ),
    Setting("token_file", "STREAMKEEPER_TOKEN_FILE", str.strip, config.TOKEN_CACHE_FILENAME, "Auth"),
    Setting(
        "token_safety_margin_sec", "STREAMKEEPER_TOKEN_SAFETY_MARGIN_SEC", int,
        config.DEFAULT_TOKEN_SAFETY_MARGIN_SEC, "Auth", lenient=True,
    ),
)


def _resolve(settings: Tuple[Setting, ...]) -> Tuple[Dict[str, Any], List[str]]:
    values: Dict[str, Any] = {}
    warnings: List[str] = []
    for s in settings:
        raw = os.environ.get(s.var)
        if raw is None or (s.lenient and not raw.strip()):
            values[s.attr] = s.default
            continue
        try:
            values[s.attr] = s.parse(raw)
        except ValueError:
            if not s.lenient:
                raise
            warnings.append(f"{s.var}={raw!r} is not a number; using {s.default}")
            values[s.attr] = s.default
    return values, warnings


# ------------------------------------------------------------
# Logging view (safe before the full environment validates)
# ------------------------------------------------------------


@dataclass(frozen=True)
class LoggingEnvironment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool


def get_logging_env() -> LoggingEnvironment:
    values, _ = _resolve(tuple(s for s in SETTINGS if s.section == "Logging"))
    return LoggingEnvironment(**values)


# ------------------------------------------------------------
# Full runtime environment
# ------------------------------------------------------------


@dataclass(frozen=True)
class Environment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool
    command: str
    playlist_id: str
    keep_count: Optional[int]
    dry_run: bool
    max_retries: int
    backoff_base_sec: float
    mutation_sleep_sec: float
    client_secrets_file: str
    token_file: str
    token_safety_margin_sec: int
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_environ(cls) -> Environment:
        values, warnings = _resolve(SETTINGS)
        env = cls(**values, warnings=warnings)

        if env.max_retries < 1:
            raise ConfigError("STREAMKEEPER_MAX_RETRIES must be >= 1")
        if env.backoff_base_sec < 0 or env.mutation_sleep_sec < 0:
            raise ConfigError("STREAMKEEPER_*_SEC values must be >= 0")
        return env

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for s in SETTINGS:
            value = getattr(self, s.attr)
            if s.attr == "keep_count" and value is None:
                value = "all"
            elif s.attr == "playlist_id" and not value:
                value = "(unset)"
            out.setdefault(s.section, {})[s.attr] = value
        return out


_ENV: Optional[Environment] = None


def reset_env_caches() -> None:
    """Invalidate cached views of environment variables."""
    global _ENV
    _ENV = None


def get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment.from_environ()
    return _ENV
