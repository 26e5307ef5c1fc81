# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Optional

from nestegg.model.sync_state import SyncState

SYNC_STATE_MARKUP = {
    SyncState.SYNCED: "[green]synced[/green]",
    SyncState.UNSYNCED: "[yellow]unsynced[/yellow]",
    SyncState.FAILED: "[red]failed[/red]",
}


def format_amount(amount: Optional[Decimal]) -> str:
    if amount is None:
        return ""
    return f"{amount:,.2f}"


def format_sync_state(sync_state: SyncState, sync_error: Optional[str] = None) -> str:
    markup = SYNC_STATE_MARKUP[sync_state]
    if sync_state is SyncState.FAILED and sync_error:
        return f"{markup} {sync_error}"
    return markup


def short_id(local_id: str) -> str:
    return local_id[:8]
