"""Command line interface for querying GitHub with an App installation or a token."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .classify import get_branch_protection_rules
from .client import Client, new_api_client
from .config import (
    with_base_url,
    with_github_app_authentication,
    with_github_app_authentication_using_private_key_value,
    with_request_logging,
    with_request_timeout,
    with_token_authentication,
)
from .errors import GitHubClientError
from .github import DEFAULT_BASE_URL, GitHubAppError, decode_private_key_base64

try:  # Optional dependency group.
    import click
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - exercised only without the CLI extra.
    click = None  # type: ignore[assignment]


def _require_cli_dependencies() -> None:
    if click is None:
        message = (
            "gh-app-client CLI dependencies are not installed. "
            "Install them with 'pip install gh-app-client[cli]'."
        )
        print(message, file=sys.stderr)
        raise SystemExit(1)


def _configure_logging(verbose: bool, log_requests: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif log_requests:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


if click is not None:
    _CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

    def _client_options(func):
        options = [
            click.option(
                "--api-url",
                default=DEFAULT_BASE_URL,
                show_default=True,
                envvar="GITHUB_API_URL",
                help="GitHub API base URL, including /api/v3 for GitHub Enterprise Server.",
            ),
            click.option(
                "--token",
                envvar="GITHUB_TOKEN",
                help="Personal access token. Mutually exclusive with GitHub App options.",
            ),
            click.option(
                "--client-id",
                envvar="GITHUB_APP_CLIENT_ID",
                help="GitHub App client ID (or App ID).",
            ),
            click.option(
                "--installation-id",
                type=int,
                envvar="GITHUB_INSTALLATION_ID",
                help="GitHub App installation identifier.",
            ),
            click.option(
                "--key-path",
                type=click.Path(
                    exists=True,
                    file_okay=True,
                    dir_okay=False,
                    readable=True,
                    path_type=Path,
                ),
                envvar="GITHUB_APP_KEY_PATH",
                help="Path to the PEM encoded GitHub App private key.",
            ),
            click.option(
                "--base64-key",
                envvar="GITHUB_APP_KEY_B64",
                help="Base64 encoded representation of the private key.",
            ),
            click.option(
                "--timeout",
                type=float,
                default=5.0,
                show_default=True,
                help="Request timeout in seconds.",
            ),
            click.option("--log-requests", is_flag=True, help="Log every outgoing request."),
            click.option("--verbose", "-v", is_flag=True, help="Enable debug logging."),
        ]
        for option in reversed(options):
            func = option(func)
        return func

    def _create_client(
        api_url: str,
        token: Optional[str],
        client_id: Optional[str],
        installation_id: Optional[int],
        key_path: Optional[Path],
        base64_key: Optional[str],
        timeout: float,
        log_requests: bool,
        verbose: bool,
    ) -> Client:
        _configure_logging(verbose, log_requests)
        options: List = [with_base_url(api_url), with_request_timeout(timeout)]
        if token:
            options.append(with_token_authentication(token))

        if key_path is not None and base64_key is not None:
            raise click.UsageError("Provide either --key-path or --base64-key, not both.")
        if base64_key is not None:
            try:
                pem_value = decode_private_key_base64(base64_key).decode("utf-8")
            except (GitHubAppError, UnicodeDecodeError) as exc:
                raise click.ClickException(f"Invalid --base64-key: {exc}") from exc
            options.append(
                with_github_app_authentication_using_private_key_value(pem_value, client_id, installation_id)
            )
        elif key_path is not None:
            options.append(with_github_app_authentication(str(key_path), client_id, installation_id))
        elif client_id or installation_id:
            raise click.UsageError("GitHub App authentication requires --key-path or --base64-key.")

        if log_requests:
            options.append(with_request_logging())

        try:
            return new_api_client(*options)
        except GitHubClientError as exc:
            raise click.ClickException(str(exc)) from exc

    @click.group(context_settings=_CONTEXT_SETTINGS)
    def _cli() -> None:
        """Query the GitHub API with a GitHub App installation or a token."""

    @_cli.command(context_settings=_CONTEXT_SETTINGS)
    @_client_options
    @click.argument("owner")
    @click.argument("repo")
    @click.argument("branch")
    def protection(owner: str, repo: str, branch: str, **client_options) -> None:  # type: ignore[misc]
        """Print the protection rules of BRANCH as JSON ({} when unprotected)."""

        with _create_client(**client_options) as client:
            try:
                rules = get_branch_protection_rules(client, owner, repo, branch)
            except GitHubClientError as exc:
                raise click.ClickException(str(exc)) from exc
        click.echo(rules.decode("utf-8"))

    @_cli.command(context_settings=_CONTEXT_SETTINGS)
    @_client_options
    @click.argument("path")
    def get(path: str, **client_options) -> None:  # type: ignore[misc]
        """GET an API PATH and print the JSON response."""

        with _create_client(**client_options) as client:
            try:
                payload = client.get_json(path)
            except GitHubClientError as exc:
                raise click.ClickException(str(exc)) from exc
        click.echo(json.dumps(payload, indent=2))

    @_cli.command(context_settings=_CONTEXT_SETTINGS)
    @_client_options
    def token(**client_options) -> None:  # type: ignore[misc]
        """Print a freshly generated installation access token."""

        with _create_client(**client_options) as client:
            if client.token_manager is None:
                raise click.UsageError("The token command requires GitHub App authentication.")
            try:
                value = client.token_manager.get_token(force_refresh=True)
            except GitHubClientError as exc:
                raise click.ClickException(str(exc)) from exc
        click.echo(value)
else:
    _cli = None


def main() -> None:
    """Entry-point used by console_scripts."""

    _require_cli_dependencies()
    assert _cli is not None  # For type-checkers.
    load_dotenv()
    _cli()


__all__ = ["main"]
