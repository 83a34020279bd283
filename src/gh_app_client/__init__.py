"""GitHub REST client authenticated with a static token or a GitHub App installation."""

from ._version import __version__
from .classify import (
    ApiOutcome,
    EmptyBySemanticRule,
    Failure,
    Success,
    classify_error,
    fetch_branch_protection,
    get_branch_protection_rules,
)
from .client import Client, ClientBuilder, new_api_client
from .config import (
    ClientConfig,
    default_config,
    with_api_version,
    with_base_transport,
    with_base_url,
    with_github_app_authentication,
    with_github_app_authentication_using_private_key_value,
    with_max_rate_limit_retries,
    with_middleware,
    with_request_logging,
    with_request_timeout,
    with_token_authentication,
    with_user_agent,
)
from .errors import (
    ApiError,
    AuthConfigError,
    BuildError,
    GitHubClientError,
    RateLimited,
    TokenExchangeError,
    TransportError,
)
from .middleware import LogHandler, Middleware, RateLimitHandler
from .token import InstallationTokenManager, StaticTokenProvider

__all__ = [
    "__version__",
    "ApiError",
    "ApiOutcome",
    "AuthConfigError",
    "BuildError",
    "Client",
    "ClientBuilder",
    "ClientConfig",
    "EmptyBySemanticRule",
    "Failure",
    "GitHubClientError",
    "InstallationTokenManager",
    "LogHandler",
    "Middleware",
    "RateLimitHandler",
    "RateLimited",
    "StaticTokenProvider",
    "Success",
    "TokenExchangeError",
    "TransportError",
    "classify_error",
    "default_config",
    "fetch_branch_protection",
    "get_branch_protection_rules",
    "new_api_client",
    "with_api_version",
    "with_base_transport",
    "with_base_url",
    "with_github_app_authentication",
    "with_github_app_authentication_using_private_key_value",
    "with_max_rate_limit_retries",
    "with_middleware",
    "with_request_logging",
    "with_request_timeout",
    "with_token_authentication",
    "with_user_agent",
]
