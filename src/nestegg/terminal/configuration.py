# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from nestegg import configuration
from nestegg.repository.configuration import (
    CONFIGURATION_REPO,
)
from nestegg.terminal.custom_typer import AliasedTyperGroup

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


def __enabled(value: bool) -> str:
    return "✓ Enabled" if value else "✗ Disabled"


def __configuration_table(title: Optional[str] = None) -> Table:
    config = CONFIGURATION_REPO.get_config()

    table = Table(title=title)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("api_base_url", config["api_base_url"])
    table.add_row("data_path", str(configuration.DATA_PATH))
    table.add_row("sync_interval_seconds", str(config["sync_interval_seconds"]))
    table.add_row(
        "initial_sync_delay_seconds", str(config["initial_sync_delay_seconds"])
    )
    table.add_row("request_timeout_seconds", str(config["request_timeout_seconds"]))
    table.add_row(
        "network_probe_interval_seconds",
        str(config["network_probe_interval_seconds"]),
    )
    table.add_row(
        "sign_in_loading_timeout_seconds",
        str(config["sign_in_loading_timeout_seconds"]),
    )
    table.add_row("prune_remote_deletions", __enabled(config["prune_remote_deletions"]))
    table.add_row("log_level", config["log_level"])
    table.add_row("log_json", __enabled(config["log_json"]))
    table.add_row("log_to_file", __enabled(config.get("log_to_file", False)))
    return table


@app.command("view, v")
def view() -> None:
    """Display current configuration settings."""
    console = Console()
    console.print(__configuration_table())
    console.print(f"Config file: {configuration.APP_CONFIG_PATH}")
    console.print(f"Log file: {configuration.LOG_FILE_PATH}")


@app.command("set, s")
def set(
    api_base_url: Annotated[
        Optional[str],
        typer.Option("--api-base-url", help="Base URL of the savings API"),
    ] = None,
    data_path: Annotated[
        Optional[str],
        typer.Option("--data-path", help="Directory for the local ledger"),
    ] = None,
    remove_data_path: Annotated[
        bool,
        typer.Option(
            "--remove-data-path", help="Go back to the platform data directory"
        ),
    ] = False,
    sync_interval_seconds: Annotated[
        Optional[int],
        typer.Option("--sync-interval", help="Seconds between scheduled passes"),
    ] = None,
    initial_sync_delay_seconds: Annotated[
        Optional[int],
        typer.Option("--initial-sync-delay", help="Seconds before the first pass"),
    ] = None,
    request_timeout_seconds: Annotated[
        Optional[float],
        typer.Option("--request-timeout", help="Seconds before a request gives up"),
    ] = None,
    network_probe_interval_seconds: Annotated[
        Optional[int],
        typer.Option("--probe-interval", help="Seconds between connectivity checks"),
    ] = None,
    sign_in_loading_timeout_seconds: Annotated[
        Optional[int],
        typer.Option(
            "--sign-in-loading-timeout",
            help="Seconds the sign-in progress indicator is shown",
        ),
    ] = None,
    prune_remote_deletions: Annotated[
        Optional[bool],
        typer.Option(
            "--prune-remote-deletions/--no-prune-remote-deletions",
            help="Remove synced records that were deleted on the server",
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
    log_json: Annotated[
        Optional[bool],
        typer.Option("--log-json/--no-log-json", help="Log JSON lines"),
    ] = None,
    log_to_file: Annotated[
        Optional[bool],
        typer.Option("--log-to-file/--no-log-to-file", help="Also log to a file"),
    ] = None,
) -> None:
    """
    Update configuration settings.
    """
    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
    if log_level is not None and log_level.upper() not in valid_log_levels:
        typer.echo(
            f"Invalid log level: {log_level}. Valid options: {', '.join(valid_log_levels)}"
        )
        raise typer.Exit(1)

    CONFIGURATION_REPO.update_config(
        api_base_url=api_base_url,
        data_path=data_path,
        remove_data_path=remove_data_path,
        sync_interval_seconds=sync_interval_seconds,
        initial_sync_delay_seconds=initial_sync_delay_seconds,
        request_timeout_seconds=request_timeout_seconds,
        network_probe_interval_seconds=network_probe_interval_seconds,
        sign_in_loading_timeout_seconds=sign_in_loading_timeout_seconds,
        prune_remote_deletions=prune_remote_deletions,
        log_level=log_level,
        log_json=log_json,
        log_to_file=log_to_file,
    )

    console = Console()
    console.print("[green]Configuration updated successfully![/green]\n")
    console.print(__configuration_table(title="Updated Configuration"))
