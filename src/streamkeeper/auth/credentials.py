from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

from streamkeeper import config
from streamkeeper.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_instant(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Credential:
    client_id: str
    access_token: str
    refresh_token: Optional[str]
    expiry: Optional[datetime]
    issued_at: datetime = field(default_factory=utcnow)
    scopes: Tuple[str, ...] = ()

    def seconds_left(self, now: datetime) -> float:
        if self.expiry is None:
            # Tokens without an expiry are treated as already expiring
            return 0.0
        return (self.expiry - now).total_seconds()

    def with_token(self, access_token: str, expiry: Optional[datetime], now: datetime) -> Credential:
        return replace(self, access_token=access_token, expiry=expiry, issued_at=now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "issued_at": self.issued_at.isoformat(),
            "scopes": list(self.scopes),
        }

    @classmethod
    def from_record(cls, client_id: str, record: Dict[str, Any]) -> Credential:
        access_token = record.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("record has no access_token")
        return cls(
            client_id=client_id,
            access_token=access_token,
            refresh_token=record.get("refresh_token") or None,
            expiry=_parse_instant(record.get("expiry")),
            issued_at=_parse_instant(record.get("issued_at")) or utcnow(),
            scopes=tuple(record.get("scopes") or ()),
        )


# ----------------------------
# Collaborator interfaces
# ----------------------------


class CredentialStore(Protocol):
    def load(self, client_id: str) -> Optional[Credential]: ...

    def persist(self, credential: Credential) -> None: ...

    def discard(self, client_id: str) -> None: ...


class CredentialAuthority(Protocol):
    """
    - refresh() exchanges the refresh token; raises CredentialRevoked if rejected
    - interactive_consent() runs the user-facing consent flow
    """

    client_id: str

    def refresh(self, credential: Credential) -> Credential: ...

    def interactive_consent(self) -> Credential: ...


# ----------------------------
# On-disk store
# ----------------------------


class JsonCredentialStore:
    """
    One JSON file, one record per client configuration:

        {"version": 1, "clients": {"<client_id>": {...}}}

    Writes go to a temp file in the same directory and are swapped in with
    os.replace, so concurrent readers see either the old or the new file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": config.TOKEN_CACHE_VERSION, "clients": {}}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read credential cache %s: %s", self.path, e)
            return {"version": config.TOKEN_CACHE_VERSION, "clients": {}}

        if not isinstance(data, dict) or not isinstance(data.get("clients"), dict):
            logger.warning("Credential cache %s has an unexpected shape; ignoring", self.path)
            return {"version": config.TOKEN_CACHE_VERSION, "clients": {}}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def load(self, client_id: str) -> Optional[Credential]:
        record = self._read()["clients"].get(client_id)
        if not isinstance(record, dict):
            return None
        try:
            return Credential.from_record(client_id, record)
        except ValueError as e:
            logger.warning("Ignoring unusable cached credential for %s: %s", client_id, e)
            return None

    def persist(self, credential: Credential) -> None:
        data = self._read()
        data["version"] = config.TOKEN_CACHE_VERSION
        data["clients"][credential.client_id] = credential.to_record()
        self._write(data)
        logger.debug("Saved OAuth credential for %s", credential.client_id)

    def discard(self, client_id: str) -> None:
        data = self._read()
        if data["clients"].pop(client_id, None) is not None:
            self._write(data)
            logger.debug("Discarded OAuth credential for %s", client_id)
