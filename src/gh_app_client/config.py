"""Client configuration and the options that may change it.

Options are plain records naming the field they set. Scalar fields follow
last-write-wins; middleware registrations accumulate in order.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from requests.adapters import BaseAdapter

from .errors import AuthConfigError, BuildError
from .github import (
    DEFAULT_API_VERSION,
    DEFAULT_BASE_URL,
    USER_AGENT,
    GitHubAppError,
    read_private_key,
)
from .middleware import LogHandler, Middleware


@dataclass(frozen=True)
class ClientConfig:
    """Immutable snapshot of everything needed to build a client."""

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = USER_AGENT
    api_version: str = DEFAULT_API_VERSION
    request_timeout: Optional[float] = None
    token: Optional[str] = None
    app_client_id: Optional[str] = None
    app_installation_id: Optional[int] = None
    app_private_key: Optional[str] = None
    app_key_path: Optional[str] = None
    middleware: Tuple[Middleware, ...] = ()
    max_rate_limit_retries: int = 3
    base_transport: Optional[BaseAdapter] = field(default=None, compare=False)


def default_config() -> ClientConfig:
    """Return a fresh configuration populated with the library defaults."""

    return ClientConfig()


_SCALAR_FIELDS = frozenset(
    f.name for f in dataclasses.fields(ClientConfig) if f.name != "middleware"
)


@dataclass(frozen=True)
class ClientOption:
    """Set field ``name`` to ``value``; ``middleware`` values are appended instead."""

    name: str
    value: Any

    def __post_init__(self) -> None:
        if self.name != "middleware" and self.name not in _SCALAR_FIELDS:
            raise ValueError(f"Unknown client option '{self.name}'")

    def apply(self, config: ClientConfig) -> ClientConfig:
        if self.name == "middleware":
            return dataclasses.replace(config, middleware=config.middleware + tuple(self.value))
        return dataclasses.replace(config, **{self.name: self.value})


@dataclass(frozen=True)
class OptionGroup:
    """Several options applied together, in order."""

    options: Tuple[ClientOption, ...]

    def apply(self, config: ClientConfig) -> ClientConfig:
        for option in self.options:
            config = option.apply(config)
        return config


Option = Union[ClientOption, OptionGroup]


def apply_options(config: ClientConfig, options) -> ClientConfig:
    """Return ``config`` with each option applied in order."""

    for option in options:
        config = option.apply(config)
    return config


def with_base_url(base_url: str) -> ClientOption:
    """Point the client at another API root, such as a GitHub Enterprise ``/api/v3`` URL."""

    return ClientOption("base_url", base_url)


def with_user_agent(user_agent: str) -> ClientOption:
    """Override the ``User-Agent`` header."""

    return ClientOption("user_agent", user_agent)


def with_api_version(api_version: str) -> ClientOption:
    """Override the ``X-GitHub-Api-Version`` header."""

    return ClientOption("api_version", api_version)


def with_request_timeout(seconds: float) -> ClientOption:
    """Apply a default timeout, in seconds, to every API request."""

    return ClientOption("request_timeout", seconds)


def with_token_authentication(token: str) -> ClientOption:
    """Authenticate every request with a static bearer token."""

    return ClientOption("token", token)


def with_max_rate_limit_retries(retries: int) -> ClientOption:
    """Bound the retries of the default rate-limit handler."""

    return ClientOption("max_rate_limit_retries", retries)


def with_base_transport(adapter: BaseAdapter) -> ClientOption:
    """Replace the default ``HTTPAdapter`` at the bottom of the transport stack."""

    return ClientOption("base_transport", adapter)


def with_middleware(*middleware: Middleware) -> ClientOption:
    """Append interceptors to the middleware chain."""

    return ClientOption("middleware", middleware)


def with_request_logging(log=None) -> ClientOption:
    """Register a :class:`LogHandler` at the current end of the middleware chain."""

    return with_middleware(LogHandler(log))


def with_github_app_authentication(key_path: str, client_id: str, installation_id: int) -> OptionGroup:
    """Authenticate as a GitHub App installation using a PEM file on disk."""

    return OptionGroup(
        (
            ClientOption("app_key_path", key_path),
            ClientOption("app_private_key", None),
            ClientOption("app_client_id", client_id),
            ClientOption("app_installation_id", installation_id),
        )
    )


def with_github_app_authentication_using_private_key_value(
    pem_value: str, client_id: str, installation_id: int
) -> OptionGroup:
    """Authenticate as a GitHub App installation using an in-memory PEM key."""

    return OptionGroup(
        (
            ClientOption("app_private_key", pem_value),
            ClientOption("app_key_path", None),
            ClientOption("app_client_id", client_id),
            ClientOption("app_installation_id", installation_id),
        )
    )


@dataclass(frozen=True)
class StaticToken:
    token: str


@dataclass(frozen=True)
class AppInstallation:
    client_id: str
    installation_id: int
    private_key: bytes = field(repr=False)


Credential = Union[StaticToken, AppInstallation]


def resolve_credential(config: ClientConfig) -> Credential:
    """Pick the single credential ``config`` describes.

    Raises ``AuthConfigError`` when no credential, both credentials or an
    incomplete App credential is configured, and ``BuildError`` when the
    private key file cannot be read.
    """

    app_fields = {
        "client ID": config.app_client_id,
        "installation ID": config.app_installation_id,
        "private key": config.app_private_key or config.app_key_path,
    }
    app_requested = any(app_fields.values())

    if config.app_private_key and config.app_key_path:
        raise AuthConfigError("Provide either a private key value or a private key path, not both")

    if app_requested:
        missing = [name for name, value in app_fields.items() if not value]
        if missing:
            raise AuthConfigError(
                "Incomplete GitHub App authentication: missing " + ", ".join(missing)
            )

    if config.token and app_requested:
        raise AuthConfigError("Token authentication and GitHub App authentication are mutually exclusive")

    if config.token:
        return StaticToken(config.token)

    if not app_requested:
        raise AuthConfigError("No authentication configured: provide a token or GitHub App credentials")

    try:
        installation_id = int(config.app_installation_id)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise AuthConfigError("GitHub App installation ID must be an integer") from exc
    if installation_id < 1:
        raise AuthConfigError("GitHub App installation ID must be a positive integer")

    if config.app_key_path:
        try:
            private_key = read_private_key(config.app_key_path)
        except GitHubAppError as exc:
            raise BuildError(str(exc)) from exc
    else:
        assert config.app_private_key is not None  # For type-checkers.
        private_key = config.app_private_key.encode("utf-8")

    return AppInstallation(
        client_id=str(config.app_client_id),
        installation_id=installation_id,
        private_key=private_key,
    )
