# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Literal, Optional, TypedDict, Union

import pendulum

from nestegg.model.entity_id import EntityId, RemoteId
from nestegg.model.sync_state import SyncState


class Deposit(TypedDict):
    local_id: EntityId
    remote_id: Optional[RemoteId]  # Assigned by the remote authority, never cleared
    entry_type: Literal["deposit"]
    sync_state: SyncState
    sync_error: Optional[str]  # Server message when sync_state is failed

    amount: Decimal  # Always > 0
    occurred_at: pendulum.DateTime
    remote_created_at: Optional[pendulum.DateTime]  # Server created_at at link time
    notes: Optional[str]
    net_income_at_time: Optional[Decimal]  # Informational only
    updated_at: pendulum.DateTime


class Withdrawal(TypedDict):
    local_id: EntityId
    remote_id: Optional[RemoteId]
    entry_type: Literal["withdrawal"]
    sync_state: SyncState
    sync_error: Optional[str]

    amount: Decimal  # Always > 0
    occurred_at: pendulum.DateTime
    remote_created_at: Optional[pendulum.DateTime]
    notes: Optional[str]
    target_goal_ref: Optional[EntityId]  # Local id of a goal, None = aggregate pool
    reason: Optional[str]
    updated_at: pendulum.DateTime


LedgerEntry = Union[Deposit, Withdrawal]
