# SPDX-License-Identifier: MIT

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from nestegg.app import LedgerApp
from nestegg.model.sync_status import SignInSyncStatus, SyncStatus
from nestegg.terminal.custom_typer import AliasedTyperGroup
from nestegg.terminal.runtime import run_with_app
from nestegg.time import datetime_to_display_local_datetime_str_optional
from nestegg.view.sync import sync_status_view

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)

console = Console()


@app.command("run, r")
def run() -> None:
    """Run one sync pass now."""

    async def work(app: LedgerApp) -> None:
        if not app.network.is_online:
            console.print("[yellow]Offline, nothing was synced[/yellow]")
        elif not app.session.is_authenticated:
            console.print("[yellow]Not signed in, nothing was synced[/yellow]")
        else:
            with console.status("Syncing..."):
                await app.scheduler.perform_sync()
        sync_status_view(app.scheduler.status.value, app.session.current_user)

    run_with_app(work)


@app.command("status, st")
def status() -> None:
    """Show connectivity and unsynced record counts."""

    async def work(app: LedgerApp) -> None:
        app.scheduler.refresh_counts()
        sync_status_view(app.scheduler.status.value, app.session.current_user)

    run_with_app(work)


@app.command("sign-in, si")
def sign_in(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Run again for the current session")
    ] = False,
) -> None:
    """Run the full post sign-in synchronization with progress."""

    async def work(app: LedgerApp) -> None:
        loading_timeout = app.config["sign_in_loading_timeout_seconds"]
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Starting synchronization...", total=100)

            def on_status(sign_in_status: SignInSyncStatus) -> None:
                progress.update(
                    task_id,
                    completed=sign_in_status["progress"],
                    description=sign_in_status["current_step"] or "Starting...",
                )

            unsubscribe = app.sign_in.status.subscribe(on_status)
            pipeline = asyncio.create_task(app.sign_in.run(force=force))
            done, _ = await asyncio.wait({pipeline}, timeout=loading_timeout)
            if not done:
                # Only the indicator gives up, the pipeline keeps going
                progress.stop()
                console.print(
                    "[yellow]Still synchronizing in the background...[/yellow]"
                )
            result = await pipeline
            unsubscribe()

        if result["error"] is not None:
            console.print(f"[red]Synchronization failed: {result['error']}[/red]")
        else:
            console.print(f"[green]{result['current_step']}[/green]")
        sync_status_view(app.scheduler.status.value, app.session.current_user)

    run_with_app(work)


@app.command("watch, w")
def watch() -> None:
    """Keep syncing on a timer and on reconnect until interrupted."""

    def on_status(sync_status: SyncStatus) -> None:
        if sync_status["is_syncing"]:
            return
        last_sync = datetime_to_display_local_datetime_str_optional(
            sync_status["last_sync_at"]
        )
        line = (
            f"[dim]{last_sync or '-'}[/dim] "
            f"{'online' if sync_status['is_online'] else 'offline'}, "
            f"{sync_status['pending_count']} pending, "
            f"{sync_status['failed_count']} failed"
        )
        if sync_status["last_error"]:
            line += f", [red]{sync_status['last_error']}[/red]"
        console.print(line)

    async def work(app: LedgerApp) -> None:
        unsubscribe = app.scheduler.status.subscribe(on_status)
        app.scheduler.start()
        try:
            await app.network.watch(app.config["network_probe_interval_seconds"])
        finally:
            unsubscribe()

    console.print("Watching, press Ctrl+C to stop")
    try:
        run_with_app(work, probe=False)
    except KeyboardInterrupt:
        console.print("Stopped")
