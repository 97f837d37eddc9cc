from __future__ import annotations


class RemoteError(Exception):
    """Base error for any playlist remote call."""


class RemoteTransient(RemoteError):
    """Network trouble, rate limiting, 5xx. Safe to retry the same call."""


class RemoteUnauthorized(RemoteError):
    """The bearer credential was rejected; refresh and retry once."""


class RemotePermanent(RemoteError):
    """Retrying cannot help (item gone, permission denied, bad request)."""


class QuotaExhaustedError(RemoteError):
    """Daily API quota is spent. Nothing else will succeed today."""
