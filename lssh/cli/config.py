"""Configuration-related CLI commands."""

from __future__ import annotations

import json

import typer

from lssh.cli._shared import show_help_if_no_subcommand
from lssh.config import AppConfig, ConfigError, ConfigStore, default_providers

config_app = typer.Typer(help="Inspect application configuration")


@config_app.callback(invoke_without_command=True)
def config_root(ctx: typer.Context) -> None:
    """Display contextual help when no subcommand is provided."""

    show_help_if_no_subcommand(ctx)


@config_app.command("show")
def show_config() -> None:
    """Display the effective configuration, including derived defaults."""

    store = ConfigStore()
    try:
        config = store.load()
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc
    typer.echo(json.dumps(config.to_payload(), indent=2))


@config_app.command("path")
def show_config_path() -> None:
    """Print where the configuration file is read from."""

    typer.echo(str(ConfigStore().path))


@config_app.command("init")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a starter configuration file based on the detected hosts file."""

    store = ConfigStore()
    if store.path.exists() and not force:
        typer.echo(f"Configuration already exists at {store.path}", err=True)
        raise typer.Exit(1)

    store.save(AppConfig(providers=default_providers()))
    typer.echo(f"Wrote configuration to {store.path}")
