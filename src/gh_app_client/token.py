"""Token providers for static tokens and GitHub App installation tokens."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests
from requests.auth import AuthBase

from .errors import AuthConfigError, TokenExchangeError
from .github import GitHubAppClient, GitHubAppError, generate_jwt

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_expiration(timestamp: str) -> datetime:
    """Convert an ISO formatted timestamp from the GitHub API into a datetime."""

    try:
        normalized = timestamp.replace("Z", "+00:00")
        return datetime.fromisoformat(normalized).astimezone(timezone.utc)
    except ValueError as exc:
        raise TokenExchangeError("Installation token payload includes invalid expires_at value") from exc


@dataclass(frozen=True)
class InstallationToken:
    """An installation access token together with its expiry."""

    token: str
    expires_at: datetime
    installation_id: int

    def is_valid(self, now: datetime, slack: timedelta = timedelta(0)) -> bool:
        return now + slack < self.expires_at


class StaticTokenProvider:
    """Return the same personal access token for every request."""

    def __init__(self, token: str) -> None:
        if not token:
            raise AuthConfigError("Static token must not be empty")
        self._token = token

    def get_token(self, now: Optional[datetime] = None) -> str:
        return self._token


class InstallationTokenManager:
    """Generate and cache GitHub App installation tokens.

    A token is reused until it is within ``refresh_slack`` of its expiry. The
    expiry check and the refresh run under one lock, so concurrent callers
    that find the token stale wait for a single exchange and then share its
    result instead of each requesting a token of their own.
    """

    _client_id: str
    _installation_id: int
    _private_key: bytes
    _client: GitHubAppClient
    _jwt_duration: int
    _refresh_slack: timedelta
    _clock: Optional[Clock]

    _cached: Optional[InstallationToken]

    def __init__(
        self,
        *,
        client_id: str,
        installation_id: int,
        private_key: bytes,
        client: Optional[GitHubAppClient] = None,
        jwt_duration: int = 10,
        refresh_slack: timedelta = timedelta(minutes=1),
        clock: Optional[Clock] = None,
    ) -> None:
        if not client_id:
            raise AuthConfigError("GitHub App client ID must be provided")
        if not installation_id or installation_id < 1:
            raise AuthConfigError("GitHub App installation ID must be a positive integer")
        if not private_key:
            raise AuthConfigError("GitHub App private key must be provided")

        self._client_id = client_id
        self._installation_id = installation_id
        self._private_key = private_key
        self._client = client or GitHubAppClient()
        self._jwt_duration = jwt_duration
        self._refresh_slack = refresh_slack
        self._clock = clock

        self._cached = None
        self._lock = threading.Lock()

    @property
    def installation_id(self) -> int:
        return self._installation_id

    @property
    def token_expiry(self) -> Optional[datetime]:
        """Expiry of the cached token, or ``None`` before the first exchange."""

        cached = self._cached
        return cached.expires_at if cached else None

    def get_token(self, now: Optional[datetime] = None, *, force_refresh: bool = False) -> str:
        """Return a valid installation token, refreshing it when required."""

        with self._lock:
            current = now or (self._clock or _utcnow)()
            cached = self._cached
            if not force_refresh and cached and cached.is_valid(current, self._refresh_slack):
                logger.debug(
                    "Using cached installation token",
                    extra={"installation_id": self._installation_id},
                )
                return cached.token

            self._cached = self._refresh_token()
            return self._cached.token

    def invalidate(self) -> None:
        """Drop the cached token so that the next request performs an exchange."""

        with self._lock:
            self._cached = None

    def _refresh_token(self) -> InstallationToken:
        """Exchange a freshly signed JWT for a new installation token."""

        logger.info(
            "Requesting new installation token",
            extra={"installation_id": self._installation_id},
        )
        try:
            jwt_token = generate_jwt(self._client_id, self._jwt_duration, self._private_key)
            payload = self._client.generate_installation_token(jwt_token, self._installation_id)
        except GitHubAppError as exc:
            raise TokenExchangeError(str(exc)) from exc

        token_value = payload.get("token")
        expiry_raw = payload.get("expires_at")
        if token_value is None:
            raise TokenExchangeError("Installation token payload missing 'token'")
        if expiry_raw is None:
            raise TokenExchangeError("Installation token payload missing 'expires_at'")

        token = InstallationToken(
            token=str(token_value),
            expires_at=_parse_expiration(str(expiry_raw)),
            installation_id=self._installation_id,
        )
        logger.info(
            "Installation token retrieved",
            extra={
                "installation_id": self._installation_id,
                "expires_at": token.expires_at.isoformat(),
            },
        )
        return token


class TokenAuth(AuthBase):
    """Attach ``Authorization: Bearer <token>`` from a token provider."""

    def __init__(self, provider) -> None:
        self.provider = provider

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self.provider.get_token()}"
        return request
