# SPDX-License-Identifier: MIT

from rich import box
from rich.console import Console
from rich.progress_bar import ProgressBar
from rich.table import Table

from nestegg.model.goal import Goal
from nestegg.view.util import format_amount, format_sync_state


def goals_view(goals: list[Goal]) -> None:
    """Display goals with their progress towards the target."""
    goals_table = Table(box=box.SIMPLE)
    goals_table.add_column("")
    goals_table.add_column("name")
    goals_table.add_column("current", justify="right")
    goals_table.add_column("target", justify="right")
    goals_table.add_column("progress")
    goals_table.add_column("sync")

    for goal in goals:
        goals_table.add_row(
            "[bold yellow]*[/bold yellow]" if goal["is_primary"] else "",
            goal["name"],
            format_amount(goal["current_amount"]),
            format_amount(goal["target_amount"]),
            ProgressBar(
                total=max(float(goal["target_amount"]), 0.01),
                completed=float(min(goal["current_amount"], goal["target_amount"])),
                width=20,
            ),
            format_sync_state(goal["sync_state"], goal["sync_error"]),
        )

    console = Console()
    console.print(goals_table)
