# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import typer

from nestegg.app import LedgerApp
from nestegg.terminal.custom_typer import AliasedTyperGroup
from nestegg.terminal.parse import parse_amount, parse_amount_optional, parse_datetime
from nestegg.terminal.runtime import run_with_app
from nestegg.view.ledger import entries_view, single_entry_view

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


@app.command("deposit, d", no_args_is_help=True)
def deposit(
    amount: str,
    net_income: Annotated[
        Optional[str],
        typer.Option(
            "--net-income",
            "-i",
            help="Net income at the time, defaults to the stored net income",
        ),
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n")] = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="YYYY-MM-DD, HH:mm, now, today, yesterday"),
    ] = None,
) -> None:
    """Record money put aside."""

    async def work(app: LedgerApp) -> None:
        entry = await app.ledger.add_deposit(
            parse_amount(amount),
            occurred_at=parse_datetime(date),
            notes=notes,
            net_income_at_time=parse_amount_optional(net_income),
        )
        single_entry_view(entry, "[green]Deposit recorded[/green]")

    run_with_app(work)


@app.command("withdraw, w", no_args_is_help=True)
def withdraw(
    amount: str,
    goal: Annotated[
        Optional[str],
        typer.Option("--goal", "-g", help="Goal to draw from, default is all savings"),
    ] = None,
    reason: Annotated[Optional[str], typer.Option("--reason", "-r")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n")] = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="YYYY-MM-DD, HH:mm, now, today, yesterday"),
    ] = None,
) -> None:
    """Record money taken out of savings."""

    async def work(app: LedgerApp) -> None:
        entry = await app.ledger.add_withdrawal(
            parse_amount(amount),
            goal_name=goal,
            reason=reason,
            notes=notes,
            occurred_at=parse_datetime(date),
        )
        single_entry_view(entry, "[green]Withdrawal recorded[/green]")

    run_with_app(work)


@app.command("list, ls")
def list_entries(
    no_wrap: Annotated[bool, typer.Option("--no-wrap", "-nw")] = False,
) -> None:
    """Show the ledger."""

    async def work(app: LedgerApp) -> None:
        entries_view(
            app.ledger.list_entries(),
            app.ledger.list_goals(),
            app.ledger.get_total_savings(),
            no_wrap=no_wrap,
        )

    run_with_app(work, probe=False)


@app.command("modify, m", no_args_is_help=True)
def modify(
    id: Annotated[str, typer.Argument(help="Entry id or a unique prefix of it")],
    amount: Annotated[Optional[str], typer.Option("--amount", "-a")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n")] = None,
    remove_notes: Annotated[bool, typer.Option("--remove-notes", "-rn")] = False,
    net_income: Annotated[Optional[str], typer.Option("--net-income", "-i")] = None,
    reason: Annotated[Optional[str], typer.Option("--reason", "-r")] = None,
    date: Annotated[Optional[str], typer.Option("--date", "-d")] = None,
) -> None:
    """Change an entry. The change is pushed on the next sync if offline."""

    async def work(app: LedgerApp) -> None:
        entry = await app.ledger.modify_entry(
            id,
            amount=parse_amount_optional(amount),
            occurred_at=parse_datetime(date),
            notes=notes,
            remove_notes=remove_notes,
            net_income_at_time=parse_amount_optional(net_income),
            reason=reason,
        )
        single_entry_view(entry, "[green]Entry updated[/green]")

    run_with_app(work)


@app.command("delete, rm", no_args_is_help=True)
def delete(
    id: Annotated[str, typer.Argument(help="Entry id or a unique prefix of it")],
) -> None:
    """Delete an entry locally and, when online, on the server."""

    async def work(app: LedgerApp) -> None:
        entry = await app.ledger.delete_entry(id)
        single_entry_view(entry, "[yellow]Entry deleted[/yellow]")

    run_with_app(work)
