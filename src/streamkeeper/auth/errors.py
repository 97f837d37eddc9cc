from __future__ import annotations

LOGIN_HINT = "run `streamkeeper auth --login`"


class AuthError(Exception):
    """Raised by credential handling; `hint` tells the operator what to do."""

    hint = "check the OAuth client configuration"


class AuthInvalid(AuthError):
    hint = LOGIN_HINT


class CredentialAbsent(AuthInvalid):
    """Nothing cached for this OAuth client and consent is not allowed."""


class CredentialRevoked(AuthInvalid):
    """Google rejected the refresh token."""


class AuthFailed(AuthError):
    """Client construction or another non-credential failure."""

    hint = "see the log file for details"
