"""Exception hierarchy shared by the client, its transports and the classifier."""

from __future__ import annotations

from typing import Any, Optional

import requests


class GitHubClientError(RuntimeError):
    """Base class for every error raised by ``gh_app_client``."""


class BuildError(GitHubClientError):
    """Raised when a client cannot be assembled from its configuration."""


class AuthConfigError(BuildError):
    """Raised when credential settings are missing or contradictory."""


class TokenExchangeError(GitHubClientError):
    """Raised when an installation access token cannot be obtained."""


class TransportError(GitHubClientError):
    """Raised when a request fails before a response is received."""


class ApiError(GitHubClientError):
    """A well-formed error response returned by the GitHub API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        documentation_url: Optional[str] = None,
        response: Optional[requests.Response] = None,
    ) -> None:
        text = f"GitHub API returned {status_code}: {message}"
        if documentation_url:
            text = f"{text} ({documentation_url})"
        super().__init__(text)
        self.status_code = status_code
        self.message = message
        self.documentation_url = documentation_url
        self.response = response

    @classmethod
    def from_response(cls, response: requests.Response) -> "ApiError":
        """Build an error from a non-2xx response, reading GitHub's error body when present."""

        message = response.reason or ""
        documentation_url = None
        try:
            payload: Any = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            message = str(payload.get("message") or message)
            documentation_url = payload.get("documentation_url")

        return cls(response.status_code, message, documentation_url, response=response)


class RateLimited(ApiError):
    """Raised when a rate-limited response survives every retry."""

    def __init__(
        self,
        status_code: int,
        message: str,
        documentation_url: Optional[str] = None,
        response: Optional[requests.Response] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(status_code, message, documentation_url, response=response)
        self.retry_after = retry_after
