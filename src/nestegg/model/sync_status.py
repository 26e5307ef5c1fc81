# SPDX-License-Identifier: MIT

from typing import Optional, TypedDict

import pendulum


class SyncStatus(TypedDict):
    is_online: bool
    is_syncing: bool
    last_sync_at: Optional[pendulum.DateTime]
    pending_count: int  # Unsynced entries and goals
    failed_count: int  # Records rejected by the remote authority
    last_error: Optional[str]


class SignInSyncStatus(TypedDict):
    is_loading: bool
    current_step: str
    progress: int  # 0-100
    error: Optional[str]
    completed: bool


class PushResult(TypedDict):
    synced: int  # Accepted by the remote authority
    pending: int  # Still unsynced, retried on the next pass
    failed: int  # Rejected, moved to the failed state


class PullResult(TypedDict):
    added: int  # Remote-only records appended locally
    updated: int  # Local records overwritten by the remote representation
    matched: int  # Local records joined to a remote record without a shared id
    pruned: int  # Synced local records removed because the remote lost them
