"""
Tests for client configuration, options and credential resolution.
"""

import dataclasses

import pytest

from gh_app_client.config import (
    AppInstallation,
    ClientConfig,
    ClientOption,
    StaticToken,
    apply_options,
    default_config,
    resolve_credential,
    with_api_version,
    with_base_url,
    with_github_app_authentication,
    with_github_app_authentication_using_private_key_value,
    with_middleware,
    with_request_logging,
    with_request_timeout,
    with_token_authentication,
)
from gh_app_client.errors import AuthConfigError, BuildError
from gh_app_client.middleware import LogHandler, Middleware, RateLimitHandler


class TestDefaultConfig:
    """Test the default configuration constructor."""

    def test_defaults(self):
        config = default_config()

        assert config.base_url == "https://api.github.com"
        assert config.api_version == "2022-11-28"
        assert config.user_agent.startswith("gh-app-client/")
        assert config.request_timeout is None
        assert config.middleware == ()
        assert config.max_rate_limit_retries == 3

    def test_returns_fresh_value_per_call(self):
        first = default_config()
        second = apply_options(first, [with_base_url("https://ghe.example.com/api/v3")])

        assert first is not default_config()
        assert default_config().base_url == "https://api.github.com"
        assert second.base_url == "https://ghe.example.com/api/v3"

    def test_config_is_immutable(self):
        config = default_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.base_url = "https://other"  # type: ignore[misc]


class TestOptions:
    """Test how options combine."""

    def test_scalar_options_last_write_wins(self):
        config = apply_options(
            default_config(),
            [with_request_timeout(5), with_api_version("2021-01-01"), with_request_timeout(10)],
        )

        assert config.request_timeout == 10
        assert config.api_version == "2021-01-01"

    def test_middleware_options_append_in_order(self):
        first, second = Middleware(), RateLimitHandler()
        config = apply_options(
            default_config(),
            [with_middleware(first), with_request_logging(), with_middleware(second)],
        )

        assert config.middleware[0] is first
        assert isinstance(config.middleware[1], LogHandler)
        assert config.middleware[2] is second

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError, match="Unknown client option"):
            ClientOption("password", "hunter2")

    def test_app_options_replace_each_other_key_source(self):
        config = apply_options(
            default_config(),
            [
                with_github_app_authentication("/keys/app.pem", "Iv1.abc", 1),
                with_github_app_authentication_using_private_key_value("PEM", "Iv1.def", 2),
            ],
        )

        assert config.app_key_path is None
        assert config.app_private_key == "PEM"
        assert config.app_client_id == "Iv1.def"
        assert config.app_installation_id == 2


class TestResolveCredential:
    """Test selection of the single active credential."""

    def test_static_token(self):
        config = apply_options(default_config(), [with_token_authentication("ghp_abc")])

        assert resolve_credential(config) == StaticToken("ghp_abc")

    def test_app_installation_from_value(self, private_key_pem):
        config = apply_options(
            default_config(),
            [with_github_app_authentication_using_private_key_value(private_key_pem, "Iv1.abc", 42)],
        )

        credential = resolve_credential(config)

        assert isinstance(credential, AppInstallation)
        assert credential.client_id == "Iv1.abc"
        assert credential.installation_id == 42
        assert credential.private_key == private_key_pem.encode("utf-8")

    def test_app_installation_from_file(self, key_file, private_key_pem):
        config = apply_options(default_config(), [with_github_app_authentication(str(key_file), "Iv1.abc", 42)])

        credential = resolve_credential(config)

        assert credential.private_key == private_key_pem.encode("utf-8")

    def test_private_key_not_in_repr(self, private_key_pem):
        credential = AppInstallation("Iv1.abc", 42, private_key_pem.encode())

        assert "PRIVATE KEY" not in repr(credential)

    def test_no_credentials(self):
        with pytest.raises(AuthConfigError, match="No authentication configured"):
            resolve_credential(default_config())

    def test_token_and_complete_app_are_exclusive(self, private_key_pem):
        config = apply_options(
            default_config(),
            [
                with_token_authentication("ghp_abc"),
                with_github_app_authentication_using_private_key_value(private_key_pem, "Iv1.abc", 42),
            ],
        )

        with pytest.raises(AuthConfigError, match="mutually exclusive"):
            resolve_credential(config)

    @pytest.mark.parametrize(
        "overrides, missing",
        [
            ({"app_installation_id": 42}, "client ID"),
            ({"app_client_id": "Iv1.abc", "app_installation_id": 42}, "private key"),
            ({"app_client_id": "Iv1.abc", "app_private_key": "PEM"}, "installation ID"),
        ],
    )
    def test_incomplete_app_settings(self, overrides, missing):
        config = ClientConfig(**overrides)

        with pytest.raises(AuthConfigError, match=missing):
            resolve_credential(config)

    def test_key_value_and_key_path_are_exclusive(self):
        config = ClientConfig(
            app_client_id="Iv1.abc",
            app_installation_id=42,
            app_private_key="PEM",
            app_key_path="/keys/app.pem",
        )

        with pytest.raises(AuthConfigError, match="not both"):
            resolve_credential(config)

    def test_non_numeric_installation_id(self):
        config = ClientConfig(app_client_id="Iv1.abc", app_installation_id="abc", app_private_key="PEM")

        with pytest.raises(AuthConfigError, match="integer"):
            resolve_credential(config)

    def test_unreadable_key_file_is_build_error(self, tmp_path):
        config = apply_options(
            default_config(),
            [with_github_app_authentication(str(tmp_path / "missing.pem"), "Iv1.abc", 42)],
        )

        with pytest.raises(BuildError, match="file not found") as excinfo:
            resolve_credential(config)
        assert not isinstance(excinfo.value, AuthConfigError)
