from __future__ import annotations

from streamkeeper.auth.cache import CredentialCache, CredentialState
from streamkeeper.auth.credentials import Credential, JsonCredentialStore
from streamkeeper.auth.errors import (
    AuthError,
    AuthFailed,
    AuthInvalid,
    CredentialAbsent,
    CredentialRevoked,
)
from streamkeeper.auth.health import AuthHealthResult, AuthHealthStatus, AuthProvider, check
from streamkeeper.auth.registry import get_provider

__all__ = [
    "AuthError",
    "AuthFailed",
    "AuthHealthResult",
    "AuthHealthStatus",
    "AuthInvalid",
    "AuthProvider",
    "Credential",
    "CredentialAbsent",
    "CredentialCache",
    "CredentialRevoked",
    "CredentialState",
    "JsonCredentialStore",
    "check",
    "get_provider",
]
