"""
api_manager.py

HTTP -> domain error translation and retry for YouTube Data API calls.

Responsibilities:
- Classify googleapiclient / transport failures into the remote error taxonomy
- Retry idempotent (read-only) calls with exponential backoff

Mutations are NOT retried here; the executor owns their retry policy.
"""

from __future__ import annotations

import json
import socket
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httplib2
import requests
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from streamkeeper import config
from streamkeeper.auth.errors import AuthError
from streamkeeper.logger import get_logger
from streamkeeper.providers.errors import (
    QuotaExhaustedError,
    RemoteError,
    RemotePermanent,
    RemoteTransient,
    RemoteUnauthorized,
)

logger = get_logger(__name__)
T = TypeVar("T")


# ============================================================
# Error detection helpers
# ============================================================


def _http_status(e: HttpError) -> Optional[int]:
    status = getattr(getattr(e, "resp", None), "status", None)
    if status is None:
        status = getattr(e, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _error_payload(e: HttpError) -> Dict[str, Any]:
    content = getattr(e, "content", b"")
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="ignore")
    if not content:
        return {}
    try:
        data = json.loads(content)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def error_reasons(e: HttpError) -> List[str]:
    """
    YouTube signals the precise failure here:
    error.errors[].reason, e.g. 'quotaExceeded', 'playlistItemNotFound'
    """
    reasons: List[str] = []
    for err in _error_payload(e).get("error", {}).get("errors", []) or []:
        if isinstance(err, dict) and err.get("reason"):
            reasons.append(str(err["reason"]))

    details = getattr(e, "error_details", None)
    if isinstance(details, list):
        for d in details:
            if isinstance(d, dict) and d.get("reason"):
                reasons.append(str(d["reason"]))

    return reasons


def http_reason(e: HttpError) -> str:
    reasons = error_reasons(e)
    if reasons:
        return ",".join(dict.fromkeys(reasons))
    try:
        return str(e.content.decode("utf-8", errors="replace"))[:300]
    except Exception:
        return str(e)


def translate_error(exc: Exception) -> RemoteError:
    """Map any exception raised by a YouTube call onto the remote error taxonomy."""
    if isinstance(exc, RemoteError):
        return exc

    if isinstance(exc, HttpError):
        status = _http_status(exc)
        reasons = error_reasons(exc)
        msg = f"HTTP {status}: {http_reason(exc)}"

        if status == 401:
            return RemoteUnauthorized(msg)
        if status == 403 and any(r in config.QUOTA_REASONS for r in reasons):
            return QuotaExhaustedError(msg)
        if status == 403 and any(r in config.RATE_LIMIT_REASONS for r in reasons):
            return RemoteTransient(msg)
        if status in config.TRANSIENT_HTTP_STATUSES:
            return RemoteTransient(msg)
        return RemotePermanent(msg)

    if isinstance(exc, RefreshError):
        return RemoteUnauthorized(f"token refresh failed: {exc}")

    if isinstance(
        exc,
        (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
            httplib2.HttpLib2Error,
            TransportError,
            socket.timeout,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return RemoteTransient(f"{type(exc).__name__}: {exc}")

    if isinstance(exc, OSError):
        return RemoteTransient(f"{type(exc).__name__}: {exc}")

    return RemotePermanent(f"{type(exc).__name__}: {exc}")


def call(operation: Callable[[], T], name: str = "") -> T:
    """
    Run one API call, re-raising failures as RemoteError. AuthError from
    the credential cache is re-raised unchanged.
    """
    try:
        return operation()
    except (RemoteError, AuthError):
        raise
    except Exception as e:
        err = translate_error(e)
        logger.debug("%s failed: %s", name or "request", err)
        raise err from e


# ============================================================
# Retry engine (read-only calls)
# ============================================================


def execute_with_retry(
    operation: Callable[[], T],
    name: str = "",
    *,
    max_retries: int = config.DEFAULT_MAX_RETRIES,
    backoff_base_sec: float = config.DEFAULT_BACKOFF_BASE_SEC,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    attempt = 0
    while True:
        try:
            return call(operation, name)
        except RemoteTransient as e:
            attempt += 1
            if attempt >= max_retries:
                raise

            sleep_time = backoff_base_sec * (2 ** (attempt - 1))
            logger.warning(
                f"{name} failed (attempt {attempt}/{max_retries}), "
                f"retrying in {sleep_time}s: {e}"
            )
            sleep(sleep_time)
