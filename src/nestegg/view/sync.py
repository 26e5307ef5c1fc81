# SPDX-License-Identifier: MIT

from rich import box
from rich.console import Console
from rich.table import Table

from nestegg.model.sync_status import SyncStatus
from nestegg.model.user import User
from nestegg.time import datetime_to_display_local_datetime_str_optional


def sync_status_view(status: SyncStatus, user: User | None) -> None:
    status_table = Table(box=box.SIMPLE, show_header=False)
    status_table.add_column("property", style="cyan")
    status_table.add_column("value")

    status_table.add_row(
        "user", f"{user['name'] or user['email'] or user['id']}" if user else "guest"
    )
    status_table.add_row(
        "network", "[green]online[/green]" if status["is_online"] else "[red]offline[/red]"
    )
    status_table.add_row("syncing", "yes" if status["is_syncing"] else "no")
    status_table.add_row(
        "last sync",
        datetime_to_display_local_datetime_str_optional(status["last_sync_at"]) or "never",
    )
    status_table.add_row("pending changes", str(status["pending_count"]))
    status_table.add_row(
        "failed records",
        f"[red]{status['failed_count']}[/red]"
        if status["failed_count"]
        else str(status["failed_count"]),
    )
    if status["last_error"]:
        status_table.add_row("last error", f"[red]{status['last_error']}[/red]")

    console = Console()
    console.print(status_table)
