# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Optional, TypedDict

import pendulum

from nestegg.model.entity_id import EntityId, RemoteId
from nestegg.model.sync_state import SyncState


class Goal(TypedDict):
    local_id: EntityId
    remote_id: Optional[RemoteId]
    sync_state: SyncState
    sync_error: Optional[str]

    name: str  # Unique per user, case-sensitive
    target_amount: Decimal  # Always > 0
    current_amount: Decimal  # Derived from the ledger, corrected by recalculation
    is_primary: bool  # At most one goal per user
    created_at: pendulum.DateTime
    updated_at: pendulum.DateTime
