# SPDX-License-Identifier: MIT

import typer

from nestegg.terminal import configuration, entry, goal, income, session, sync
from nestegg.terminal.custom_typer import OrderedAliasedTyperGroup

app = typer.Typer(
    cls=OrderedAliasedTyperGroup,
    help="Nestegg - Offline-first savings ledger in the CLI",
    no_args_is_help=True,
)
app.add_typer(entry.app, name="entry, e", help="Deposits and withdrawals")
app.add_typer(goal.app, name="goal, g", help="Savings goals")
app.add_typer(income.app, name="income, i", help="Net income")
app.add_typer(sync.app, name="sync, s", help="Synchronization with the server")
app.add_typer(session.app, name="session, ss", help="Sign in and out")
app.add_typer(configuration.app, name="config, c", help="Configuration")


def run() -> None:
    app()
