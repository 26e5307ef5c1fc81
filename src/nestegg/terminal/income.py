# SPDX-License-Identifier: MIT

import typer
from rich.console import Console

from nestegg.app import LedgerApp
from nestegg.terminal.custom_typer import AliasedTyperGroup
from nestegg.terminal.parse import parse_amount
from nestegg.terminal.runtime import run_with_app
from nestegg.view.util import format_amount

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


@app.command("set", no_args_is_help=True)
def set(amount: str) -> None:
    """Store the current net income, used for new deposits."""

    async def work(app: LedgerApp) -> None:
        await app.ledger.set_net_income(parse_amount(amount))
        Console().print(
            f"Net income set to [bold]{format_amount(app.ledger.get_net_income())}[/bold]"
        )

    run_with_app(work)


@app.command("show")
def show() -> None:
    """Show the net income and total savings."""

    async def work(app: LedgerApp) -> None:
        console = Console()
        console.print(f"Net income: {format_amount(app.ledger.get_net_income())}")
        console.print(f"Total savings: {format_amount(app.ledger.get_total_savings())}")

    run_with_app(work, probe=False)
