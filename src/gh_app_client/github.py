"""Helper utilities for talking to the GitHub App endpoints."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import jwt
import requests

from ._version import __version__

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"
USER_AGENT = f"gh-app-client/{__version__}"
ACCEPT = "application/vnd.github+json"


class GitHubAppError(RuntimeError):
    """Raised when a GitHub App operation fails."""


def normalize_base_url(base_url: Optional[str]) -> str:
    """Return ``base_url`` without trailing slashes, validating its scheme and host.

    GitHub Enterprise Server installs are addressed with their ``/api/v3``
    prefix, so any path component is kept as-is.
    """

    cleaned = (base_url or DEFAULT_BASE_URL).strip().rstrip("/")
    parts = urlsplit(cleaned)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise GitHubAppError(f"Invalid base URL '{base_url}': expected http(s)://host[/path]")
    return cleaned


def read_private_key(path: str) -> bytes:
    """Load an RSA private key from disk."""

    key_path = Path(path)
    try:
        return key_path.read_bytes()
    except FileNotFoundError as exc:
        raise GitHubAppError(f"Unable to read key file '{path}': file not found") from exc
    except OSError as exc:
        raise GitHubAppError(f"Unable to read key file '{path}': {exc}") from exc


def decode_private_key_base64(encoded_key: str) -> bytes:
    """Decode a base64 encoded PEM key as supplied through environment variables."""

    try:
        return base64.b64decode(encoded_key, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise GitHubAppError("Unable to decode key from base64") from exc


def generate_jwt(client_id: str, expiry_minutes: int, private_key: bytes) -> str:
    """Generate a JWT signed with the GitHub App's private key.

    ``client_id`` may be the App's client ID or its numeric App ID; GitHub
    accepts either as the issuer.
    """

    if not client_id:
        raise GitHubAppError("GitHub App client ID must be provided")

    if expiry_minutes < 1 or expiry_minutes > 10:
        expiry_minutes = 10

    now = datetime.now(timezone.utc)
    payload = {
        "iat": now - timedelta(seconds=60),
        "exp": now + timedelta(minutes=expiry_minutes),
        "iss": client_id,
    }

    try:
        return jwt.encode(payload, private_key, algorithm="RS256")
    except Exception as exc:  # PyJWT wraps multiple errors.
        raise GitHubAppError("Unable to sign JWT") from exc


class GitHubAppClient:
    """HTTP client used for the App-level token exchange."""

    base_url: str
    session: requests.Session

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        *,
        user_agent: str = USER_AGENT,
        api_version: str = DEFAULT_API_VERSION,
        timeout: Optional[float] = 20,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self.session = session or requests.Session()
        self.user_agent = user_agent
        self.api_version = api_version
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
    ) -> requests.Response:
        """Perform an HTTP request with the headers required by GitHub."""

        url = f"{self.base_url}{path}"
        headers = {
            "Accept": ACCEPT,
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": self.user_agent,
        }
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GitHubAppError(f"Request to {url} failed: {exc}") from exc

        return response

    def generate_installation_token(self, jwt_token: str, installation_id: int) -> Dict[str, Any]:
        """Create an installation access token for the given installation ID."""

        response = self._request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            bearer=jwt_token,
        )

        if response.status_code != 201:
            raise GitHubAppError(
                f"Failed generating installation token: unexpected status {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise GitHubAppError("Unable to decode installation token response") from exc

        if not isinstance(payload, dict):
            raise GitHubAppError("Unexpected token response format")

        return payload
