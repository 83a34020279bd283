"""Assemble the authenticated GitHub API client and its transport stack.

The stack built for every client, outermost first::

    Client (timeout, default headers, static token)
      -> MiddlewareAdapter (registered interceptors, then rate limiting)
        -> AppAuthAdapter (GitHub App credentials only)
          -> base transport (requests.adapters.HTTPAdapter)

Authentication sits inside the middleware so that every retry issued by an
interceptor carries a valid credential.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.adapters import BaseAdapter, HTTPAdapter

from .config import (
    AppInstallation,
    ClientConfig,
    Credential,
    StaticToken,
    apply_options,
    default_config,
    resolve_credential,
)
from .errors import ApiError, BuildError, GitHubClientError, RateLimited, TransportError
from .github import ACCEPT, GitHubAppClient, GitHubAppError, generate_jwt, normalize_base_url
from .middleware import MiddlewareAdapter, RateLimitHandler, is_rate_limited, rate_limit_wait
from .token import InstallationTokenManager, StaticTokenProvider, TokenAuth
from .transport import AppAuthAdapter

logger = logging.getLogger(__name__)

# Seconds allowed for a token exchange when no request timeout is configured.
EXCHANGE_TIMEOUT = 20


class Client:
    """A configured GitHub REST client backed by a ``requests.Session``."""

    def __init__(
        self,
        session: requests.Session,
        config: ClientConfig,
        *,
        token_manager: Optional[InstallationTokenManager] = None,
    ) -> None:
        self.session = session
        self.config = config
        self.base_url = normalize_base_url(config.base_url)
        self.token_manager = token_manager

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request through the pipeline and return a successful response.

        Raises ``ApiError`` (or ``RateLimited``) for non-2xx responses,
        ``TransportError`` when no response was received and
        ``TokenExchangeError`` when an installation token cannot be obtained.
        """

        kwargs.setdefault("timeout", self.config.request_timeout)
        url = self.url_for(path)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_for(response)
        return response

    def get_json(self, path: str, **kwargs: Any) -> Any:
        response = self.request("GET", path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubClientError(f"Unable to decode JSON response from {response.url}") from exc

    def get_branch_protection(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        """Return the protection rules of ``branch``."""

        path = "/repos/{}/{}/branches/{}/protection".format(
            quote(owner, safe=""), quote(repo, safe=""), quote(branch, safe="")
        )
        return self.get_json(path)


def _error_for(response: requests.Response) -> ApiError:
    error = ApiError.from_response(response)
    if is_rate_limited(response):
        return RateLimited(
            error.status_code,
            error.message,
            error.documentation_url,
            response=response,
            retry_after=rate_limit_wait(response),
        )
    return error


class ClientBuilder:
    """Apply options to a fresh configuration and wire the transport stack."""

    def __init__(self, *options) -> None:
        self.options = options

    def build(self) -> Client:
        config = apply_options(default_config(), self.options)
        credential = resolve_credential(config)

        try:
            base_url = normalize_base_url(config.base_url)
        except GitHubAppError as exc:
            raise BuildError(str(exc)) from exc

        base_transport = config.base_transport or HTTPAdapter()
        token_manager = None
        transport: BaseAdapter = base_transport

        if isinstance(credential, AppInstallation):
            token_manager = _installation_token_manager(credential, config, base_url, base_transport)
            transport = AppAuthAdapter(transport, token_manager, base_url)

        middlewares = list(config.middleware)
        if not any(isinstance(m, RateLimitHandler) for m in middlewares):
            middlewares.append(RateLimitHandler(max_retries=config.max_rate_limit_retries))
        transport = MiddlewareAdapter(transport, middlewares)

        session = requests.Session()
        session.mount("https://", transport)
        session.mount("http://", transport)
        session.headers.update(
            {
                "Accept": ACCEPT,
                "User-Agent": config.user_agent,
                "X-GitHub-Api-Version": config.api_version,
            }
        )
        if isinstance(credential, StaticToken):
            session.auth = TokenAuth(StaticTokenProvider(credential.token))

        logger.debug(
            "Built GitHub client",
            extra={
                "base_url": base_url,
                "auth_mode": _auth_mode(credential),
                "middleware": [m.name for m in middlewares],
            },
        )
        return Client(session, config, token_manager=token_manager)


def _installation_token_manager(
    credential: AppInstallation,
    config: ClientConfig,
    base_url: str,
    base_transport: BaseAdapter,
) -> InstallationTokenManager:
    # The exchange reuses the base transport but none of the middleware.
    exchange_session = requests.Session()
    exchange_session.mount("https://", base_transport)
    exchange_session.mount("http://", base_transport)
    exchange_client = GitHubAppClient(
        base_url,
        exchange_session,
        user_agent=config.user_agent,
        api_version=config.api_version,
        timeout=config.request_timeout or EXCHANGE_TIMEOUT,
    )

    try:
        generate_jwt(credential.client_id, 1, credential.private_key)
    except GitHubAppError as exc:
        raise BuildError(f"Unable to use GitHub App private key: {exc}") from exc

    return InstallationTokenManager(
        client_id=credential.client_id,
        installation_id=credential.installation_id,
        private_key=credential.private_key,
        client=exchange_client,
    )


def _auth_mode(credential: Credential) -> str:
    return "app" if isinstance(credential, AppInstallation) else "token"


def new_api_client(*options) -> Client:
    """Build a :class:`Client` from ``options``; see :class:`ClientBuilder`."""

    return ClientBuilder(*options).build()
