"""
Keygate Command-Line Interface

Provides commands to start the authorization server and to manage clients,
users and scopes in the configured record store.

Author: Keygate Team
Date: 2026-10-07
"""

import sys
import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
import uvicorn

from . import __version__
from .app import create_app
from .core.config_manager import ConfigManager, KeygateConfig
from .core.logging_config import setup_logging
from .oauth.exceptions import OAuthError
from .oauth.models import ROLE_SUPERUSER, ROLE_USER
from .oauth.service import OAuthService
from .store.exceptions import StoreError
from .store.factory import create_record_store


def _load_config(config: Optional[Path], overrides: Optional[dict] = None) -> KeygateConfig:
    return ConfigManager().load(
        config_file=str(config) if config else None,
        cli_overrides=overrides,
    )


def _run_admin(config: KeygateConfig, operation) -> None:
    """Run ``operation(service)`` against the configured store, then close it."""

    async def _main():
        store = create_record_store(config.store)
        try:
            return await operation(OAuthService(store, config.oauth))
        finally:
            await store.close()

    try:
        asyncio.run(_main())
    except OAuthError as e:
        click.echo(f"[ERROR] {e.message}", err=True)
        sys.exit(1)
    except StoreError as e:
        click.echo(f"[ERROR] Record store failure: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)


@click.group()
@click.version_option(version=__version__, prog_name="keygate")
@click.pass_context
def cli(ctx):
    """
    Keygate - OAuth 2.0 Authorization Server

    Issues and introspects opaque bearer tokens for registered clients.
    """
    ctx.ensure_object(dict)


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config)")
@click.option("--port", default=None, type=int, help="Port to bind to (overrides config and PORT)")
@config_option
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (overrides config)",
)
def start(host: Optional[str], port: Optional[int], config: Optional[Path], log_level: Optional[str]):
    """
    Start the Keygate server.

    Examples:
        keygate start
        keygate start --port 9000
        keygate start --config keygate.yaml --log-level DEBUG
    """
    overrides: dict = {}
    if host:
        overrides.setdefault("server", {})["host"] = host
    if port:
        overrides.setdefault("server", {})["port"] = port
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level.upper()

    cfg = _load_config(config, overrides)
    setup_logging(
        level=cfg.logging.level,
        format_type=cfg.logging.format,
        log_file=cfg.logging.file,
        rotation_size=cfg.logging.rotation_size,
        rotation_count=cfg.logging.rotation_count,
        module_levels=cfg.logging.module_levels,
    )
    logger = logging.getLogger("keygate.cli")
    logger.info(f"OAuth2 server listening on {cfg.server.host}:{cfg.server.port}")

    click.echo(f"Starting Keygate v{__version__}")
    click.echo(f"Host: {cfg.server.host}:{cfg.server.port}")
    click.echo(f"Store: {cfg.store.type}")
    click.echo()

    try:
        uvicorn.run(
            create_app(cfg),
            host=cfg.server.host,
            port=cfg.server.port,
            log_level=str(cfg.logging.level).lower(),
            access_log=True,
        )
    except KeyboardInterrupt:
        click.echo("\nShutting down Keygate...")


@cli.command("create-client")
@click.argument("client_id")
@click.argument("redirect_url")
@click.option("--secret", prompt=True, hide_input=True, confirmation_prompt=True, help="Client secret")
@click.option("--app-name", default=None, help="Name shown on the consent page")
@click.option("--scope", "scopes", multiple=True, help="Scope shown on the consent page (repeatable)")
@config_option
def create_client(
    client_id: str,
    redirect_url: str,
    secret: str,
    app_name: Optional[str],
    scopes: tuple,
    config: Optional[Path],
):
    """
    Register a client application.

    Examples:
        keygate create-client acme https://acme.example/cb --app-name "Acme"
    """

    async def operation(service: OAuthService):
        client = await service.clients.create_client(
            client_id, secret, redirect_url, app_name=app_name, scopes=list(scopes)
        )
        click.echo(f"[OK] Created client '{client.client_id}' (id {client.id})")

    _run_admin(_load_config(config), operation)


@cli.command("create-user")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="User password")
@click.option(
    "--role",
    default=ROLE_USER,
    type=click.Choice([ROLE_USER, ROLE_SUPERUSER]),
    show_default=True,
    help="User role",
)
@config_option
def create_user(email: str, password: str, role: str, config: Optional[Path]):
    """
    Create a user.

    Examples:
        keygate create-user alice@example.com --role superuser
    """

    async def operation(service: OAuthService):
        user = await service.users.create_user(role, email, password)
        click.echo(f"[OK] Created user '{user.email}' (id {user.id})")

    _run_admin(_load_config(config), operation)


@cli.command("create-scope")
@click.argument("scope")
@click.option("--default", "is_default", is_flag=True, help="Grant when no scope is requested")
@click.option("--description", default=None, help="Human-readable description")
@config_option
def create_scope(scope: str, is_default: bool, description: Optional[str], config: Optional[Path]):
    """
    Add a scope to the catalog.

    Examples:
        keygate create-scope read --default
    """

    async def operation(service: OAuthService):
        created = await service.scopes.create_scope(
            scope,
            is_default=is_default,
            description=description,
            record_id=service.secret_factory.new_id(),
        )
        click.echo(f"[OK] Scope '{created.scope}' (default: {created.is_default})")

    _run_admin(_load_config(config), operation)


if __name__ == "__main__":
    cli()
