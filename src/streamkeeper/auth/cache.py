"""
cache.py

OAuth credential lifecycle as an explicit state machine:

    ABSENT ──consent──▶ VALID ──(margin)──▶ EXPIRING ──▶ REFRESHING ──▶ VALID
                          ▲                                  │
                          └──────────consent──── REVOKED ◀───┘ (refresh rejected)

Every transition that produces a new token persists it before returning.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from streamkeeper import config
from streamkeeper.auth.credentials import (
    Credential,
    CredentialAuthority,
    CredentialStore,
    utcnow,
)
from streamkeeper.auth.errors import CredentialAbsent, CredentialRevoked
from streamkeeper.logger import get_logger

logger = get_logger(__name__)


class CredentialState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRING = "expiring"
    REFRESHING = "refreshing"
    REVOKED = "revoked"


class CredentialCache:
    def __init__(
        self,
        store: CredentialStore,
        authority: CredentialAuthority,
        *,
        safety_margin: timedelta = timedelta(seconds=config.DEFAULT_TOKEN_SAFETY_MARGIN_SEC),
        interactive: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._authority = authority
        self._margin = safety_margin
        self._interactive = interactive
        self._clock = clock

        self._credential: Optional[Credential] = None
        self._loaded = False
        self.state = CredentialState.ABSENT

    @property
    def client_id(self) -> str:
        return self._authority.client_id

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def get(self) -> Credential:
        """
        Return a credential that is good for at least the safety margin,
        refreshing or re-consenting as needed.
        """
        if not self._loaded:
            self._load()

        self._settle()

        if self.state is CredentialState.ABSENT:
            return self._consent("no cached credential")

        if self.state is CredentialState.REVOKED:
            return self._consent("refresh token revoked")

        if self.state is CredentialState.EXPIRING:
            return self._refresh()

        if self._credential is None:
            raise RuntimeError(
                f"credential cache for {self.client_id} is {self.state.value} without a credential"
            )
        return self._credential

    def force_refresh(self) -> Credential:
        """Called when the remote rejected the current access token."""
        if not self._loaded:
            self._load()

        if self._credential is None:
            return self._consent("no cached credential")
        return self._refresh()

    def login(self) -> Credential:
        """Discard whatever is cached and run consent again."""
        self._store.discard(self.client_id)
        self._credential = None
        self._loaded = True
        self.state = CredentialState.ABSENT
        return self._consent("login requested")

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    def _load(self) -> None:
        self._credential = self._store.load(self.client_id)
        self._loaded = True
        logger.debug(
            "Loaded cached credential for %s: %s",
            self.client_id,
            "present" if self._credential else "absent",
        )

    def _settle(self) -> None:
        """Derive the state from the cached credential and the clock."""
        if self._credential is None:
            if self.state is not CredentialState.REVOKED:
                self.state = CredentialState.ABSENT
            return
        if self._credential.seconds_left(self._clock()) > self._margin.total_seconds():
            self.state = CredentialState.VALID
        else:
            self.state = CredentialState.EXPIRING

    def _refresh(self) -> Credential:
        if self._credential is None:
            raise RuntimeError("refresh requested with no cached credential")
        self.state = CredentialState.REFRESHING

        try:
            if not self._credential.refresh_token:
                raise CredentialRevoked("cached credential has no refresh token")
            logger.debug("Refreshing OAuth token for %s", self.client_id)
            fresh = self._authority.refresh(self._credential)
        except CredentialRevoked as e:
            logger.warning("OAuth refresh rejected for %s: %s", self.client_id, e)
            self.state = CredentialState.REVOKED
            self._store.discard(self.client_id)
            self._credential = None
            return self._consent("refresh token revoked", cause=e)

        return self._adopt(fresh)

    def _consent(self, why: str, cause: Optional[Exception] = None) -> Credential:
        if not self._interactive:
            error = CredentialRevoked if self.state is CredentialState.REVOKED else CredentialAbsent
            raise error(f"Interactive consent required for {self.client_id} ({why})") from cause

        logger.info("Starting OAuth consent flow (%s)", why)
        return self._adopt(self._authority.interactive_consent())

    def _adopt(self, credential: Credential) -> Credential:
        self._store.persist(credential)
        self._credential = credential
        self.state = CredentialState.VALID
        return credential
