# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Annotated, Optional

import typer
from rich.console import Console

from nestegg.app import LedgerApp
from nestegg.gateway.errors import GatewayError
from nestegg.model.user import User
from nestegg.terminal.custom_typer import AliasedTyperGroup
from nestegg.terminal.runtime import run_with_app
from nestegg.view.util import format_amount

app = typer.Typer(cls=AliasedTyperGroup, no_args_is_help=True)

console = Console()


@app.command("login", no_args_is_help=True)
def login(
    token: Annotated[str, typer.Argument(help="Bearer token issued by the server")],
    user_id: Annotated[
        Optional[int],
        typer.Option(
            "--user-id",
            "-u",
            help="Needed when offline, otherwise the profile is fetched",
        ),
    ] = None,
    name: Annotated[Optional[str], typer.Option("--name")] = None,
    email: Annotated[Optional[str], typer.Option("--email")] = None,
    sync: Annotated[
        bool, typer.Option("--sync/--no-sync", help="Run the sign-in sync afterwards")
    ] = True,
) -> None:
    """Store a session for an already issued token."""

    async def work(app: LedgerApp) -> None:
        user: Optional[User] = None
        if user_id is not None:
            user = {
                "id": user_id,
                "name": name,
                "email": email,
                "net_income": None,
                "profile_picture": None,
                "voice_notifications_enabled": True,
                "reminder_frequency": "weekly",
                "theme": "light",
            }
        elif not app.network.is_online:
            console.print("[red]Offline: pass --user-id to sign in without the server[/red]")
            raise typer.Exit(1)
        try:
            user = await app.login(token, user)
        except GatewayError as e:
            console.print(f"[red]Could not load the profile: {e.message}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Signed in as {user['name'] or user['email'] or user['id']}[/green]")

        if sync:
            result = await app.sign_in.run()
            if result["error"] is not None:
                console.print(f"[yellow]Sync failed: {result['error']}[/yellow]")

    run_with_app(work)


@app.command("logout")
def logout() -> None:
    """Forget the session. Local data of the user stays on disk."""

    async def work(app: LedgerApp) -> None:
        app.logout()
        console.print("Signed out")

    run_with_app(work, probe=False)


@app.command("show")
def show() -> None:
    """Show the signed-in user."""

    async def work(app: LedgerApp) -> None:
        user = app.session.current_user
        if user is None:
            console.print("Not signed in, working in the guest ledger")
            return
        console.print(f"id: {user['id']}")
        console.print(f"name: {user['name'] or ''}")
        console.print(f"email: {user['email'] or ''}")
        console.print(f"net income: {format_amount(user['net_income'] or Decimal('0'))}")

    run_with_app(work, probe=False)
