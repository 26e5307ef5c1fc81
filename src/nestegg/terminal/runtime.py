# SPDX-License-Identifier: MIT

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from nestegg import configuration
from nestegg.app import LedgerApp, create_app
from nestegg.repository.configuration import CONFIGURATION_REPO
from nestegg.repository.ledger import LedgerStoreError
from nestegg.service.ledger import LedgerValidationError

T = TypeVar("T")

console = Console(stderr=True)


def build_app() -> LedgerApp:
    return create_app(CONFIGURATION_REPO.get_config(), configuration.DATA_PATH)


def run_with_app(work: Callable[[LedgerApp], Awaitable[T]], probe: bool = True) -> T:
    """
    Run a command against a freshly wired app on its own event loop.

    Local validation and storage failures end the command with exit code 1.
    """

    async def runner() -> T:
        app = build_app()
        try:
            if probe:
                await app.network.probe()
            return await work(app)
        finally:
            await app.aclose()

    try:
        return asyncio.run(runner())
    except LedgerValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except LedgerStoreError as e:
        console.print(f"[red]Storage error: {e}[/red]")
        raise typer.Exit(1)
