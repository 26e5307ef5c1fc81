# SPDX-License-Identifier: MIT

from decimal import Decimal

from nestegg.model.entity_id import generate_entity_id
from nestegg.model.ledger_entry import Deposit, Withdrawal
from nestegg.model.sync_state import SyncState
from nestegg.time import now_utc


def get_deposit_template() -> Deposit:
    now = now_utc()
    return {
        "local_id": generate_entity_id(),
        "remote_id": None,
        "entry_type": "deposit",
        "sync_state": SyncState.UNSYNCED,
        "sync_error": None,
        "amount": Decimal("0"),  # Must be set
        "occurred_at": now,
        "remote_created_at": None,
        "notes": None,
        "net_income_at_time": None,
        "updated_at": now,
    }


def get_withdrawal_template() -> Withdrawal:
    now = now_utc()
    return {
        "local_id": generate_entity_id(),
        "remote_id": None,
        "entry_type": "withdrawal",
        "sync_state": SyncState.UNSYNCED,
        "sync_error": None,
        "amount": Decimal("0"),  # Must be set
        "occurred_at": now,
        "remote_created_at": None,
        "notes": None,
        "target_goal_ref": None,
        "reason": None,
        "updated_at": now,
    }
