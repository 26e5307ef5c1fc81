# SPDX-License-Identifier: MIT

from typing import Annotated, Optional

import typer

from nestegg.app import LedgerApp
from nestegg.terminal.custom_typer import AliasedTyperGroup
from nestegg.terminal.parse import parse_amount, parse_amount_optional
from nestegg.terminal.runtime import run_with_app
from nestegg.view.goal import goals_view

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)


@app.command("add, a", no_args_is_help=True)
def add(
    name: str,
    target: str,
    primary: Annotated[
        bool, typer.Option("--primary", "-p", help="Make this the primary goal")
    ] = False,
) -> None:
    """Create a savings goal."""

    async def work(app: LedgerApp) -> None:
        await app.ledger.add_goal(name, parse_amount(target), is_primary=primary)
        goals_view(app.ledger.list_goals())

    run_with_app(work)


@app.command("list, ls")
def list_goals() -> None:
    """Show goals, the primary goal is starred."""

    async def work(app: LedgerApp) -> None:
        goals_view(app.ledger.list_goals())

    run_with_app(work, probe=False)


@app.command("modify, m", no_args_is_help=True)
def modify(
    name: str,
    new_name: Annotated[Optional[str], typer.Option("--name", "-n")] = None,
    target: Annotated[Optional[str], typer.Option("--target", "-t")] = None,
) -> None:
    """Rename a goal or change its target."""

    async def work(app: LedgerApp) -> None:
        await app.ledger.modify_goal(
            name, new_name=new_name, target_amount=parse_amount_optional(target)
        )
        goals_view(app.ledger.list_goals())

    run_with_app(work)


@app.command("primary, p", no_args_is_help=True)
def primary(name: str) -> None:
    """Make a goal the primary goal. Every other goal stops being primary."""

    async def work(app: LedgerApp) -> None:
        await app.ledger.set_primary_goal(name)
        goals_view(app.ledger.list_goals())

    run_with_app(work)


@app.command("delete, rm", no_args_is_help=True)
def delete(name: str) -> None:
    """Delete a goal locally and, when online, on the server."""

    async def work(app: LedgerApp) -> None:
        await app.ledger.delete_goal(name)
        goals_view(app.ledger.list_goals())

    run_with_app(work)
