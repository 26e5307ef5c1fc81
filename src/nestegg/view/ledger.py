# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from nestegg.model.goal import Goal
from nestegg.model.ledger_entry import LedgerEntry
from nestegg.time import datetime_to_display_local_datetime_str
from nestegg.view.util import format_amount, format_sync_state, short_id


def entries_view(
    history: list[LedgerEntry],
    goals: list[Goal],
    total_savings: Decimal,
    no_wrap: bool = False,
) -> None:
    """Display the ledger, oldest entry first."""
    goal_names = {goal["local_id"]: goal["name"] for goal in goals}

    entries_table = Table(box=box.SIMPLE)
    entries_table.add_column("id")
    entries_table.add_column("date")
    entries_table.add_column("type")
    entries_table.add_column("amount", justify="right")
    entries_table.add_column("goal")
    entries_table.add_column("notes", no_wrap=no_wrap, overflow="ellipsis")
    entries_table.add_column("sync")

    for entry in sorted(history, key=lambda entry: entry["occurred_at"]):
        if entry["entry_type"] == "deposit":
            amount = f"[green]+{format_amount(entry['amount'])}[/green]"
            goal = ""
            notes = entry["notes"] or ""
        else:
            amount = f"[red]-{format_amount(entry['amount'])}[/red]"
            goal_ref = entry["target_goal_ref"]
            goal = goal_names.get(goal_ref, "") if goal_ref is not None else ""
            notes = " / ".join(
                part for part in (entry["reason"], entry["notes"]) if part
            )
        entries_table.add_row(
            short_id(entry["local_id"]),
            datetime_to_display_local_datetime_str(entry["occurred_at"]),
            entry["entry_type"],
            amount,
            goal,
            notes,
            format_sync_state(entry["sync_state"], entry["sync_error"]),
        )

    console = Console()
    console.print(entries_table)
    console.print(f"Total savings: [bold]{format_amount(total_savings)}[/bold]")


def single_entry_view(entry: LedgerEntry, message: Optional[str] = None) -> None:
    entry_table = Table(box=box.SIMPLE)
    entry_table.add_column("property")
    entry_table.add_column("value")

    entry_table.add_row("id", entry["local_id"])
    entry_table.add_row(
        "remote id", str(entry["remote_id"]) if entry["remote_id"] is not None else ""
    )
    entry_table.add_row("type", entry["entry_type"])
    entry_table.add_row("amount", format_amount(entry["amount"]))
    entry_table.add_row(
        "date", datetime_to_display_local_datetime_str(entry["occurred_at"])
    )
    entry_table.add_row("notes", entry["notes"] or "")
    if entry["entry_type"] == "deposit":
        entry_table.add_row("net income", format_amount(entry["net_income_at_time"]))
    else:
        entry_table.add_row("reason", entry["reason"] or "")
    entry_table.add_row(
        "sync", format_sync_state(entry["sync_state"], entry["sync_error"])
    )

    console = Console()
    if message is not None:
        console.print(message)
    console.print(entry_table)
