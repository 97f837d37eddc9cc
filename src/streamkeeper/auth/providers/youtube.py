from __future__ import annotations

import json
from datetime import timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from streamkeeper import config
from streamkeeper.auth.health import AuthHealthResult, AuthHealthStatus, AuthProvider
from streamkeeper.auth.cache import CredentialCache
from streamkeeper.auth.credentials import (
    Credential,
    CredentialAuthority,
    CredentialStore,
    JsonCredentialStore,
    utcnow,
)
from streamkeeper.auth.errors import AuthFailed, AuthInvalid, CredentialRevoked
from streamkeeper.env import get_env
from streamkeeper.env.paths import auth_client_secrets_file, auth_token_file
from streamkeeper.logger import get_logger
from streamkeeper.providers.errors import (
    QuotaExhaustedError,
    RemoteTransient,
    RemoteUnauthorized,
)
from streamkeeper.providers.youtube import api_manager

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


# ----------------------------
# google-auth backed authority
# ----------------------------


class GoogleCredentialAuthority:
    """
    Talks to Google's token endpoint (refresh) and runs the installed-app
    consent flow in the browser.
    """

    def __init__(
        self,
        client_secrets_path: Path,
        scopes: Sequence[str] = config.YOUTUBE_OAUTH_SCOPES,
    ) -> None:
        self._secrets_path = Path(client_secrets_path)
        self._scopes = tuple(scopes)
        self._raw: Optional[Dict[str, Any]] = None
        self._logger = get_logger("auth.youtube")

    def _client_config(self) -> Dict[str, Any]:
        if self._raw is None:
            if not self._secrets_path.exists():
                raise AuthInvalid(f"Missing OAuth client secrets file: {self._secrets_path}")
            try:
                data = json.loads(self._secrets_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise AuthInvalid(f"Unreadable OAuth client secrets file: {e}") from e

            section = data.get("installed") or data.get("web") if isinstance(data, dict) else None
            if not isinstance(section, dict) or not section.get("client_id"):
                raise AuthInvalid(
                    f"OAuth client secrets file has no client_id: {self._secrets_path}"
                )
            self._raw = data
        return self._raw.get("installed") or self._raw["web"]

    @property
    def client_id(self) -> str:
        return str(self._client_config()["client_id"])

    def to_google(self, credential: Credential) -> Credentials:
        cfg = self._client_config()
        expiry = None
        if credential.expiry is not None:
            # google-auth compares against naive UTC
            expiry = credential.expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=credential.access_token,
            refresh_token=credential.refresh_token,
            token_uri=cfg.get("token_uri", GOOGLE_TOKEN_URI),
            client_id=cfg["client_id"],
            client_secret=cfg.get("client_secret"),
            scopes=list(credential.scopes or self._scopes),
            expiry=expiry,
        )

    def _from_google(self, creds: Credentials, previous: Optional[Credential] = None) -> Credential:
        expiry = creds.expiry
        if expiry is not None and expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)

        # Google usually omits the refresh token on refresh responses
        refresh_token = creds.refresh_token or (previous.refresh_token if previous else None)

        return Credential(
            client_id=self.client_id,
            access_token=creds.token,
            refresh_token=refresh_token,
            expiry=expiry,
            issued_at=utcnow(),
            scopes=tuple(creds.scopes or self._scopes),
        )

    def refresh(self, credential: Credential) -> Credential:
        creds = self.to_google(credential)
        try:
            creds.refresh(Request())
        except RefreshError as e:
            if getattr(e, "retryable", False):
                raise RemoteTransient(f"token refresh failed: {e}") from e
            raise CredentialRevoked(str(e)) from e
        except TransportError as e:
            raise RemoteTransient(f"token endpoint unreachable: {e}") from e

        self._logger.debug("Successfully refreshed OAuth token")
        return self._from_google(creds, previous=credential)

    def interactive_consent(self) -> Credential:
        self._client_config()
        try:
            self._logger.debug("Starting OAuth authentication flow...")
            flow = InstalledAppFlow.from_client_config(self._raw, list(self._scopes))
            creds = flow.run_local_server(port=0)
        except Exception as e:
            self._logger.error(f"OAuth authentication failed: {e}")
            raise AuthInvalid(str(e)) from e

        self._logger.debug("Successfully authenticated with OAuth")
        return self._from_google(creds)


# ----------------------------
# Provider
# ----------------------------


class YouTubeOAuthProvider(AuthProvider):
    name = "youtube"

    def __init__(
        self,
        *,
        interactive: bool = True,
        store: Optional[CredentialStore] = None,
        authority: Optional[CredentialAuthority] = None,
    ) -> None:
        self._logger = get_logger("auth.youtube")
        self._interactive = interactive
        self._store = store
        self._authority = authority
        self._cache: Optional[CredentialCache] = None

        self._client: Any = None
        self._client_token: Optional[str] = None

    @property
    def credential_cache(self) -> CredentialCache:
        if self._cache is None:
            env = get_env()
            store = self._store or JsonCredentialStore(auth_token_file(env.token_file))
            authority = self._authority or GoogleCredentialAuthority(
                auth_client_secrets_file(env.client_secrets_file)
            )
            self._cache = CredentialCache(
                store,
                authority,
                safety_margin=timedelta(seconds=env.token_safety_margin_sec),
                interactive=self._interactive,
            )
        return self._cache

    def ensure_ready(self) -> Credential:
        return self.credential_cache.get()

    def refresh(self) -> Credential:
        return self.credential_cache.force_refresh()

    def login(self) -> Credential:
        self._client = None
        self._client_token = None
        return self.credential_cache.login()

    def build_client(self) -> Any:
        """
        Service object bound to the current access token. Rebuilt only when the
        token changes; refresh stays with the credential cache.
        """
        credential = self.ensure_ready()
        if self._client is not None and self._client_token == credential.access_token:
            return self._client

        creds = Credentials(token=credential.access_token, scopes=list(credential.scopes))
        try:
            self._client = build("youtube", "v3", credentials=creds, cache_discovery=False)
        except Exception as e:
            self._logger.error(f"Failed to build YouTube client: {e}")
            raise AuthFailed(str(e)) from e

        self._client_token = credential.access_token
        return self._client

    def health_check(self) -> AuthHealthResult:
        """
        Validates OAuth by making a cheap authenticated request.
        Treats API quota exhaustion as OAuth OK.
        """
        self._logger.info("oauth.check.start")

        try:
            youtube = self.build_client()
            api_manager.call(
                lambda: youtube.channels().list(part="id", mine=True, maxResults=1).execute(),
                "channels.list",
            )

        except QuotaExhaustedError:
            self._logger.warning("oauth.check.ok_quota_exhausted")
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.OK_API_QUOTA,
                message="OAuth OK (API quota exhausted)",
            )

        except (AuthInvalid, RemoteUnauthorized) as e:
            self._logger.error("oauth.check.auth_invalid: %s", e)
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.AUTH_INVALID,
                message="OAuth INVALID - reauthentication required",
            )

        except Exception as e:
            self._logger.error("oauth.check.failed", exc_info=e)
            return AuthHealthResult(
                provider=self.name,
                status=AuthHealthStatus.FAILED,
                message=f"OAuth check failed: {e}",
            )

        self._logger.info("oauth.check.ok")
        return AuthHealthResult(
            provider=self.name,
            status=AuthHealthStatus.OK,
            message="OAuth OK",
        )
