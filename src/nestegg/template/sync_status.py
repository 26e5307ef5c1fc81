# SPDX-License-Identifier: MIT

from nestegg.model.sync_status import SignInSyncStatus, SyncStatus


def get_sync_status_template(is_online: bool) -> SyncStatus:
    return {
        "is_online": is_online,
        "is_syncing": False,
        "last_sync_at": None,
        "pending_count": 0,
        "failed_count": 0,
        "last_error": None,
    }


def get_sign_in_sync_status_template() -> SignInSyncStatus:
    return {
        "is_loading": False,
        "current_step": "",
        "progress": 0,
        "error": None,
        "completed": False,
    }
