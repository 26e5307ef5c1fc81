# SPDX-License-Identifier: MIT

from enum import Enum


class SyncState(str, Enum):
    """
    Replication state of a locally stored record.

    - unsynced: carries a local change the remote authority has not accepted yet
    - synced: matches the last representation accepted by the remote authority
    - failed: the remote authority rejected the payload; skipped by push until
      the record is modified again
    """

    UNSYNCED = "unsynced"
    SYNCED = "synced"
    FAILED = "failed"
