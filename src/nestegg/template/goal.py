# SPDX-License-Identifier: MIT

from decimal import Decimal

from nestegg.model.entity_id import generate_entity_id
from nestegg.model.goal import Goal
from nestegg.model.sync_state import SyncState
from nestegg.time import now_utc


def get_goal_template() -> Goal:
    now = now_utc()
    return {
        "local_id": generate_entity_id(),
        "remote_id": None,
        "sync_state": SyncState.UNSYNCED,
        "sync_error": None,
        "name": "",  # Must be set
        "target_amount": Decimal("0"),  # Must be set
        "current_amount": Decimal("0"),
        "is_primary": False,
        "created_at": now,
        "updated_at": now,
    }
