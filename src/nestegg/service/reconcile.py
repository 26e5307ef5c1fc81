# SPDX-License-Identifier: MIT

import logging
from decimal import Decimal
from typing import Any, Callable, Optional

import pendulum

from nestegg import time
from nestegg.gateway.errors import (
    GatewayError,
    NotFoundError,
    ValidationError,
)
from nestegg.gateway.remote import RemoteGateway
from nestegg.gateway.wire import RemoteRecord, to_payload
from nestegg.model.entity_id import EntityId, RemoteId, generate_entity_id
from nestegg.model.entity_kind import EntityKind, collection_for
from nestegg.model.sync_state import SyncState
from nestegg.model.sync_status import PullResult, PushResult
from nestegg.repository.ledger import LedgerStore
from nestegg.template.goal import get_goal_template
from nestegg.template.ledger_entry import (
    get_deposit_template,
    get_withdrawal_template,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
TIMESTAMP_TOLERANCE_SECONDS = 60

# Fields a remote record may overwrite on a synced local record
ENTRY_MUTABLE_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.DEPOSIT: ("amount", "occurred_at", "notes", "net_income_at_time"),
    EntityKind.WITHDRAWAL: ("amount", "occurred_at", "notes", "reason"),
}
GOAL_MUTABLE_FIELDS = ("name", "target_amount", "current_amount", "is_primary")

UserIdProvider = Callable[[], Optional[int]]


def _mutable_fields(kind: EntityKind) -> tuple[str, ...]:
    if kind is EntityKind.GOAL:
        return GOAL_MUTABLE_FIELDS
    return ENTRY_MUTABLE_FIELDS[kind]


def _belongs_to(kind: EntityKind, record: dict[str, Any]) -> bool:
    if kind is EntityKind.GOAL:
        return True
    return record["entry_type"] == kind.value


def _amounts_differ(
    first: Optional[Decimal], second: Optional[Decimal], tolerance: Decimal
) -> bool:
    if first is None or second is None:
        return first is not second
    return abs(first - second) > tolerance


def _text_differs(first: Optional[str], second: Optional[str]) -> bool:
    return (first or "") != (second or "")


def match_by_heuristic(
    kind: EntityKind,
    remote: RemoteRecord,
    local_records: list[dict[str, Any]],
) -> Optional[dict[str, Any]]:
    """
    Find the local entry a remote entry most likely stands for when the two
    share no id: same entry type, no remote id yet, amounts within a cent and
    the local occurrence on the same local calendar day as the remote creation.

    A create whose response was lost leaves exactly this situation behind.
    """
    for local in local_records:
        if not _belongs_to(kind, local) or local["remote_id"] is not None:
            continue
        if abs(local["amount"] - remote["amount"]) >= AMOUNT_TOLERANCE:
            continue
        if not time.is_same_local_day(local["occurred_at"], remote["occurred_at"]):
            continue
        return local
    return None


def match_goal_by_name(
    remote: RemoteRecord, goals: list[dict[str, Any]]
) -> Optional[dict[str, Any]]:
    for goal in goals:
        if goal["remote_id"] is None and goal["name"] == remote["name"]:
            return goal
    return None


def detect_conflicts(
    kind: EntityKind, local: dict[str, Any], remote: RemoteRecord
) -> list[str]:
    """Names of the fields whose local and remote values disagree."""
    conflicts = []
    if kind is EntityKind.GOAL:
        if local["name"] != remote["name"]:
            conflicts.append("name")
        if _amounts_differ(
            local["target_amount"], remote["target_amount"], AMOUNT_TOLERANCE
        ):
            conflicts.append("target_amount")
        if _amounts_differ(
            local["current_amount"], remote["current_amount"], AMOUNT_TOLERANCE
        ):
            conflicts.append("current_amount")
        if local["is_primary"] != remote["is_primary"]:
            conflicts.append("is_primary")
        return conflicts

    if _amounts_differ(local["amount"], remote["amount"], AMOUNT_TOLERANCE):
        conflicts.append("amount")
    if _text_differs(local["notes"], remote["notes"]):
        conflicts.append("notes")
    if kind is EntityKind.DEPOSIT:
        if _amounts_differ(
            local["net_income_at_time"], remote["net_income_at_time"], Decimal("0")
        ):
            conflicts.append("net_income_at_time")
    elif _text_differs(local["reason"], remote["reason"]):
        conflicts.append("reason")
    # The backend only knows its own creation time. Once linked, the local
    # date is compared through the creation time recorded at that point.
    baseline = local.get("remote_created_at") or local["occurred_at"]
    if (
        time.seconds_between(baseline, remote["occurred_at"])
        > TIMESTAMP_TOLERANCE_SECONDS
    ):
        conflicts.append("occurred_at")
    return conflicts


def resolve_conflict(
    kind: EntityKind, local: dict[str, Any], remote: RemoteRecord
) -> dict[str, Any]:
    """
    Join a local record to its remote counterpart.

    A local record with pending intent (unsynced or failed) keeps its values
    and only learns the remote id. A synced local record has no pending
    intent, so the remote representation replaces its mutable fields.
    """
    resolved = dict(local)
    conflicts = detect_conflicts(kind, local, remote)
    adopts_remote_id = local["remote_id"] is None
    if adopts_remote_id:
        resolved["remote_id"] = remote["remote_id"]
    if kind is not EntityKind.GOAL:
        resolved["remote_created_at"] = remote["occurred_at"]

    if not conflicts:
        resolved["sync_state"] = SyncState.SYNCED
        resolved["sync_error"] = None
        return resolved

    if local["sync_state"] is SyncState.SYNCED:
        logger.info(
            "Remote wins for %s %s on %s",
            kind.value,
            remote["remote_id"],
            ", ".join(conflicts),
        )
        for field in _mutable_fields(kind):
            if field == "occurred_at" and field not in conflicts:
                continue
            resolved[field] = remote[field]
        resolved["updated_at"] = remote["updated_at"]
        return resolved

    logger.info(
        "Local wins for %s %s on %s",
        kind.value,
        remote["remote_id"],
        ", ".join(conflicts),
    )
    if local["sync_state"] is SyncState.FAILED and adopts_remote_id:
        # The rejected payload was a create; with a remote id it becomes an
        # update, which deserves a fresh attempt.
        resolved["sync_state"] = SyncState.UNSYNCED
        resolved["sync_error"] = None
    return resolved


def enforce_single_primary(goals: list[dict[str, Any]]) -> int:
    """
    Clear all but one primary flag in place and return how many were cleared.

    A primary flag carrying pending local intent wins, otherwise the first
    primary in collection order wins.
    """
    primaries = [goal for goal in goals if goal["is_primary"]]
    if len(primaries) <= 1:
        return 0
    winner = next(
        (goal for goal in primaries if goal["sync_state"] is SyncState.UNSYNCED),
        primaries[0],
    )
    for goal in primaries:
        if goal is winner:
            continue
        goal["is_primary"] = False
        if goal["sync_state"] is SyncState.SYNCED:
            goal["sync_state"] = SyncState.UNSYNCED
    logger.info("Kept %s as the only primary goal", winner["name"])
    return len(primaries) - 1


def record_from_remote(kind: EntityKind, remote: RemoteRecord) -> dict[str, Any]:
    """Build a synced local record for a remote record seen for the first time."""
    record: dict[str, Any]
    if kind is EntityKind.GOAL:
        record = dict(get_goal_template())
        record["created_at"] = remote["created_at"]
    elif kind is EntityKind.DEPOSIT:
        record = dict(get_deposit_template())
    else:
        record = dict(get_withdrawal_template())
    for field in _mutable_fields(kind):
        record[field] = remote[field]
    if kind is not EntityKind.GOAL:
        record["remote_created_at"] = remote["occurred_at"]
    record["local_id"] = generate_entity_id()
    record["remote_id"] = remote["remote_id"]
    record["sync_state"] = SyncState.SYNCED
    record["updated_at"] = remote["updated_at"]
    return record


class ReconciliationEngine:
    """
    Pushes unsynced local records to the remote authority and merges the
    remote set back into the local store, one entity kind at a time.

    The store is re-read after every awaited gateway call, so user writes that
    interleave with a pass are never overwritten by a stale copy.
    """

    def __init__(
        self,
        store: LedgerStore,
        gateway: RemoteGateway,
        user_id_provider: UserIdProvider,
        prune_remote_deletions: bool = False,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.user_id_provider = user_id_provider
        self.prune_remote_deletions = prune_remote_deletions
        self._in_flight: set[EntityId] = set()

    def __read(self, kind: EntityKind) -> list[dict[str, Any]]:
        return self.store.read_all(collection_for(kind))

    def __write(self, kind: EntityKind, records: list[dict[str, Any]]) -> None:
        self.store.write_all(collection_for(kind), records)

    def find_record(
        self, kind: EntityKind, local_id: EntityId
    ) -> Optional[dict[str, Any]]:
        for record in self.__read(kind):
            if record["local_id"] == local_id and _belongs_to(kind, record):
                return record
        return None

    def patch_record(
        self,
        kind: EntityKind,
        local_id: EntityId,
        changes: dict[str, Any],
        expected_updated_at: Optional[pendulum.DateTime] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Apply changes to the latest stored version of a record.

        When ``expected_updated_at`` is given and the record was modified in
        the meantime, the sync state is left alone: the newer local edit still
        has to be pushed. Returns None if the record no longer exists.
        """
        records = self.__read(kind)
        for record in records:
            if record["local_id"] != local_id:
                continue
            modified_meanwhile = (
                expected_updated_at is not None
                and record["updated_at"] != expected_updated_at
            )
            for field, value in changes.items():
                if modified_meanwhile and field in ("sync_state", "sync_error"):
                    continue
                record[field] = value
            self.__write(kind, records)
            return record
        return None

    async def __create(
        self, kind: EntityKind, record: dict[str, Any], payload: dict[str, Any]
    ) -> None:
        created = await self.gateway.create(kind, payload)
        current = self.find_record(kind, record["local_id"])
        if current is not None and current["remote_id"] not in (
            None,
            created["remote_id"],
        ):
            # Linked to another remote copy while the create was in flight
            logger.warning(
                "Local %s %s is already linked to remote %s, removing duplicate %s",
                kind.value,
                record["local_id"],
                current["remote_id"],
                created["remote_id"],
            )
            await self.delete_remote(kind, created["remote_id"])
            return

        changes: dict[str, Any] = {
            "remote_id": created["remote_id"],
            "sync_state": SyncState.SYNCED,
            "sync_error": None,
        }
        if kind is not EntityKind.GOAL:
            changes["remote_created_at"] = created["occurred_at"]
        patched = self.patch_record(
            kind,
            record["local_id"],
            changes,
            expected_updated_at=record["updated_at"],
        )
        if patched is None:
            # Deleted locally while the create was in flight
            logger.info(
                "Removing remote %s %s created for a deleted record",
                kind.value,
                created["remote_id"],
            )
            await self.delete_remote(kind, created["remote_id"])

    async def push_record(self, kind: EntityKind, local_id: EntityId) -> bool:
        """
        Push one record. Returns True once the remote authority accepted it.

        Gateway failures are logged and reflected in the record's sync state,
        never raised. A record already being pushed by another caller is
        skipped.
        """
        if local_id in self._in_flight:
            logger.debug("%s %s is already being pushed", kind.value, local_id)
            return False
        record = self.find_record(kind, local_id)
        if record is None or record["sync_state"] is not SyncState.UNSYNCED:
            return False

        self._in_flight.add(local_id)
        try:
            return await self.__push_unsynced(kind, local_id, record)
        finally:
            self._in_flight.discard(local_id)

    async def __push_unsynced(
        self, kind: EntityKind, local_id: EntityId, record: dict[str, Any]
    ) -> bool:
        payload = to_payload(kind, record, self.user_id_provider())
        try:
            if record["remote_id"] is None:
                await self.__create(kind, record, payload)
            else:
                try:
                    await self.gateway.update(kind, record["remote_id"], payload)
                except NotFoundError:
                    logger.warning(
                        "Remote %s %s is gone, re-creating it",
                        kind.value,
                        record["remote_id"],
                    )
                    record = self.patch_record(kind, local_id, {"remote_id": None})
                    if record is None:
                        return False
                    await self.__create(kind, record, payload)
                else:
                    self.patch_record(
                        kind,
                        local_id,
                        {"sync_state": SyncState.SYNCED, "sync_error": None},
                        expected_updated_at=record["updated_at"],
                    )
        except ValidationError as e:
            logger.warning("Remote rejected %s %s: %s", kind.value, local_id, e.message)
            self.patch_record(
                kind,
                local_id,
                {"sync_state": SyncState.FAILED, "sync_error": e.message},
                expected_updated_at=record["updated_at"],
            )
            return False
        except GatewayError as e:
            logger.warning("Could not push %s %s: %s", kind.value, local_id, e.message)
            return False
        return True

    async def push(self, kind: EntityKind) -> PushResult:
        """Push every unsynced record of a kind. One failure never blocks others."""
        result: PushResult = {"synced": 0, "pending": 0, "failed": 0}
        local_ids = [
            record["local_id"]
            for record in self.__read(kind)
            if _belongs_to(kind, record) and record["sync_state"] is SyncState.UNSYNCED
        ]
        for local_id in local_ids:
            if await self.push_record(kind, local_id):
                result["synced"] += 1
                continue
            record = self.find_record(kind, local_id)
            if record is not None and record["sync_state"] is SyncState.FAILED:
                result["failed"] += 1
            elif record is not None:
                result["pending"] += 1
        logger.debug("Pushed %s: %s", kind.value, result)
        return result

    async def pull(self, kind: EntityKind) -> PullResult:
        """
        Merge the remote set of a kind into the local store.

        Raises the gateway error if the remote set cannot be listed; the local
        store is left untouched in that case.
        """
        remote_records = await self.gateway.list_all(kind)
        result: PullResult = {"added": 0, "updated": 0, "matched": 0, "pruned": 0}

        records = self.__read(kind)
        by_remote_id = {
            record["remote_id"]: record
            for record in records
            if _belongs_to(kind, record) and record["remote_id"] is not None
        }

        for remote in remote_records:
            local = by_remote_id.get(remote["remote_id"])
            if local is None:
                if kind is EntityKind.GOAL:
                    local = match_goal_by_name(remote, records)
                else:
                    local = match_by_heuristic(kind, remote, records)
                if local is not None:
                    result["matched"] += 1
                    logger.info(
                        "Linked local %s %s to remote %s",
                        kind.value,
                        local["local_id"],
                        remote["remote_id"],
                    )

            if local is None:
                record = record_from_remote(kind, remote)
                records.append(record)
                by_remote_id[remote["remote_id"]] = record
                result["added"] += 1
                continue

            if local["sync_state"] is SyncState.SYNCED and detect_conflicts(
                kind, local, remote
            ):
                result["updated"] += 1
            resolved = resolve_conflict(kind, local, remote)
            local.update(resolved)
            by_remote_id[remote["remote_id"]] = local

        if self.prune_remote_deletions:
            result["pruned"] = self.__prune(kind, records, remote_records)
        if kind is EntityKind.GOAL:
            enforce_single_primary(records)

        self.__write(kind, records)
        logger.debug("Pulled %s: %s", kind.value, result)
        return result

    def __prune(
        self,
        kind: EntityKind,
        records: list[dict[str, Any]],
        remote_records: list[RemoteRecord],
    ) -> int:
        remote_ids: set[RemoteId] = {remote["remote_id"] for remote in remote_records}
        kept = [
            record
            for record in records
            if not (
                _belongs_to(kind, record)
                and record["sync_state"] is SyncState.SYNCED
                and record["remote_id"] is not None
                and record["remote_id"] not in remote_ids
            )
        ]
        pruned = len(records) - len(kept)
        if pruned:
            logger.info("Removed %d %s record(s) deleted remotely", pruned, kind.value)
        records[:] = kept
        return pruned

    async def sync_kind(self, kind: EntityKind) -> tuple[PushResult, PullResult]:
        """Push then pull one kind, so fresh local creates are never pulled as new."""
        pushed = await self.push(kind)
        pulled = await self.pull(kind)
        return pushed, pulled

    async def delete_remote(self, kind: EntityKind, remote_id: RemoteId) -> bool:
        """Best-effort remote delete. A record the remote no longer has counts as deleted."""
        try:
            await self.gateway.delete(kind, remote_id)
        except NotFoundError:
            return True
        except GatewayError as e:
            logger.warning(
                "Could not delete remote %s %s: %s", kind.value, remote_id, e.message
            )
            return False
        return True

    def count_pending(self) -> int:
        return self.__count(SyncState.UNSYNCED)

    def count_failed(self) -> int:
        return self.__count(SyncState.FAILED)

    def __count(self, sync_state: SyncState) -> int:
        history = self.store.read_history()
        goals = self.store.read_goals()
        return sum(
            1 for record in [*history, *goals] if record["sync_state"] is sync_state
        )
