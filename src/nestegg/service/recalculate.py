# SPDX-License-Identifier: MIT

import logging
from decimal import Decimal
from typing import Callable, Optional

from nestegg import time
from nestegg.model.entity_kind import EntityKind
from nestegg.model.goal import Goal
from nestegg.model.ledger_entry import LedgerEntry
from nestegg.model.sync_state import SyncState
from nestegg.repository.ledger import LedgerStore
from nestegg.service.reconcile import AMOUNT_TOLERANCE, ReconciliationEngine

logger = logging.getLogger(__name__)


def replay_ledger(history: list[LedgerEntry]) -> Decimal:
    """
    Balance of the primary goal as implied by the ledger.

    Every deposit adds to the primary goal and every withdrawal draws from it,
    whatever goal a withdrawal names. The balance never goes below zero.
    """
    total_deposits = sum(
        (entry["amount"] for entry in history if entry["entry_type"] == "deposit"),
        Decimal("0"),
    )
    total_withdrawals = sum(
        (entry["amount"] for entry in history if entry["entry_type"] == "withdrawal"),
        Decimal("0"),
    )
    return max(Decimal("0"), total_deposits - total_withdrawals)


def get_total_savings(history: list[LedgerEntry]) -> Decimal:
    """Net of the ledger, not clamped."""
    total = Decimal("0")
    for entry in history:
        if entry["entry_type"] == "deposit":
            total += entry["amount"]
        else:
            total -= entry["amount"]
    return total


def get_primary_goal(goals: list[Goal]) -> Optional[Goal]:
    return next((goal for goal in goals if goal["is_primary"]), None)


class AggregateRecalculator:
    def __init__(
        self,
        store: LedgerStore,
        engine: ReconciliationEngine,
        is_online: Callable[[], bool],
    ) -> None:
        self.store = store
        self.engine = engine
        self.is_online = is_online

    async def recalculate(self) -> Optional[Decimal]:
        """
        Correct the primary goal's balance from a replay of the ledger.

        Returns the corrected balance, or None when nothing was changed. A
        corrected goal is marked unsynced and pushed right away when online.
        """
        corrected = replay_ledger(self.store.read_history())

        goals = self.store.read_goals()
        primary = get_primary_goal(goals)
        if primary is None:
            return None
        if abs(primary["current_amount"] - corrected) <= AMOUNT_TOLERANCE:
            return None

        logger.info(
            "Correcting %s balance from %s to %s",
            primary["name"],
            primary["current_amount"],
            corrected,
        )
        primary["current_amount"] = corrected
        primary["updated_at"] = time.now_utc()
        primary["sync_state"] = SyncState.UNSYNCED
        primary["sync_error"] = None
        self.store.write_goals(goals)

        if self.is_online():
            await self.engine.push_record(EntityKind.GOAL, primary["local_id"])
        return corrected
