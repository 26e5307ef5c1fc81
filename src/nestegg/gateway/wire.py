# SPDX-License-Identifier: MIT

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeAlias, cast

from nestegg import time
from nestegg.gateway.errors import ValidationError
from nestegg.model.entity_kind import EntityKind
from nestegg.model.goal import Goal
from nestegg.model.ledger_entry import Deposit, Withdrawal

# Remote records are normalized to the local field names so that merge code
# can compare them key by key with local records.
RemoteRecord: TypeAlias = dict[str, Any]


def decimal_to_wire(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def decimal_from_wire(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Malformed decimal value from server: {value!r}") from e


def to_payload(kind: EntityKind, record: Any, user_id: Optional[int]) -> dict[str, Any]:
    """Build the request body the backend expects for a local record."""
    if kind is EntityKind.DEPOSIT:
        deposit = cast(Deposit, record)
        payload: dict[str, Any] = {
            "net_income": decimal_to_wire(deposit["net_income_at_time"]),
            "amount_saved": decimal_to_wire(deposit["amount"]),
            "notes": deposit["notes"],
        }
    elif kind is EntityKind.WITHDRAWAL:
        withdrawal = cast(Withdrawal, record)
        payload = {
            "amount_withdrawn": decimal_to_wire(withdrawal["amount"]),
            "reason": withdrawal["reason"],
            "notes": withdrawal["notes"],
        }
    else:
        goal = cast(Goal, record)
        payload = {
            "name": goal["name"],
            "target_amount": decimal_to_wire(goal["target_amount"]),
            "current_amount": decimal_to_wire(goal["current_amount"]),
            "is_primary": goal["is_primary"],
        }

    if user_id is not None:
        payload["s_user_id"] = user_id
    return payload


def from_remote(kind: EntityKind, data: dict[str, Any]) -> RemoteRecord:
    """Normalize a server representation into local field names."""
    if not isinstance(data, dict) or data.get("id") is None:
        raise ValidationError(f"Server returned a {kind.value} without an id")

    created_at = time.datetime_from_str_optional(data.get("created_at"))
    updated_at = time.datetime_from_str_optional(data.get("updated_at"))
    now = time.now_utc()

    if kind is EntityKind.GOAL:
        return {
            "remote_id": int(data["id"]),
            "name": data.get("name"),
            "target_amount": decimal_from_wire(data.get("target_amount"))
            or Decimal("0"),
            "current_amount": decimal_from_wire(data.get("current_amount"))
            or Decimal("0"),
            "is_primary": bool(data.get("is_primary", False)),
            "created_at": created_at or updated_at or now,
            "updated_at": updated_at or created_at or now,
        }

    remote: RemoteRecord = {
        "remote_id": int(data["id"]),
        "entry_type": kind.value,
        "occurred_at": created_at or updated_at or now,
        "updated_at": updated_at or created_at or now,
        "notes": data.get("notes"),
    }
    if kind is EntityKind.DEPOSIT:
        remote["amount"] = decimal_from_wire(data.get("amount_saved"))
        remote["net_income_at_time"] = decimal_from_wire(data.get("net_income"))
    else:
        remote["amount"] = decimal_from_wire(data.get("amount_withdrawn"))
        remote["reason"] = data.get("reason")

    if remote["amount"] is None:
        raise ValidationError(f"Server returned a {kind.value} without an amount")
    return remote
