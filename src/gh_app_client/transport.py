"""Transport adapters that decorate another ``requests`` adapter."""

from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import urlsplit

from requests import PreparedRequest, Response
from requests.adapters import BaseAdapter

from .token import InstallationTokenManager


def _origin(url: str) -> Tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


class AppAuthAdapter(BaseAdapter):
    """Inject a GitHub App installation token before delegating to ``inner``.

    When ``base_url`` is given the token is only added to requests for that
    scheme and host; requests elsewhere (redirect targets, absolute URLs)
    are forwarded without it.

    The adapter performs no retries; whatever the inner adapter returns or
    raises is handed back unchanged. A ``TokenExchangeError`` raised while
    refreshing the token propagates to the caller of the request.
    """

    def __init__(
        self,
        inner: BaseAdapter,
        token_manager: InstallationTokenManager,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.inner = inner
        self.token_manager = token_manager
        self.origin = _origin(base_url) if base_url else None

    def send(self, request: PreparedRequest, **kwargs) -> Response:
        if self.origin is None or _origin(request.url or "") == self.origin:
            token = self.token_manager.get_token()
            request.headers["Authorization"] = f"Bearer {token}"
        return self.inner.send(request, **kwargs)

    def close(self) -> None:
        self.inner.close()
