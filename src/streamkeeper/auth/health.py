"""
Auth health: one cheap authenticated call, classified so the CLI can
map it straight onto an exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class AuthHealthStatus(str, Enum):
    OK = "ok"
    OK_API_QUOTA = "ok_api_quota"
    AUTH_INVALID = "auth_invalid"
    FAILED = "failed"


# Quota exhaustion still proves the token works
_EXIT_CODES = {
    AuthHealthStatus.OK: 0,
    AuthHealthStatus.OK_API_QUOTA: 0,
    AuthHealthStatus.AUTH_INVALID: 12,
    AuthHealthStatus.FAILED: 20,
}


@dataclass(frozen=True)
class AuthHealthResult:
    provider: str
    status: AuthHealthStatus
    message: str

    @property
    def ok(self) -> bool:
        return self.status in (AuthHealthStatus.OK, AuthHealthStatus.OK_API_QUOTA)

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]


class AuthProvider(Protocol):
    """
    ensure_ready() hands back a credential good for at least the safety
    margin. refresh() is for the executor after the remote answered 401.
    build_client() is bound to whatever ensure_ready() returned.
    """

    name: str

    def ensure_ready(self) -> Any: ...

    def refresh(self) -> Any: ...

    def login(self) -> Any: ...

    def build_client(self) -> Any: ...

    def health_check(self) -> AuthHealthResult: ...


def check(provider_name: str = "youtube", *, interactive: bool = False) -> AuthHealthResult:
    from streamkeeper.auth.registry import get_provider

    return get_provider(provider_name, interactive=interactive).health_check()
