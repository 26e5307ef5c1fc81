# SPDX-License-Identifier: MIT

import os
import tempfile
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional, cast

from yaml import YAMLError, dump, load

try:
    from yaml import CDumper as Dumper
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Dumper, Loader  # type: ignore[assignment]

from nestegg import time
from nestegg.model.entity_kind import Collection
from nestegg.model.goal import Goal
from nestegg.model.ledger_entry import LedgerEntry
from nestegg.model.settings import AppSettings
from nestegg.model.sync_state import SyncState
from nestegg.template.settings import get_settings_template

DECIMAL_FIELDS = ("amount", "net_income_at_time", "target_amount", "current_amount")
DATETIME_FIELDS = ("occurred_at", "remote_created_at", "created_at", "updated_at")

NET_INCOME_FILE = "net_income.yaml"
SETTINGS_FILE = "settings.yaml"


class LedgerStoreError(Exception):
    """Raised when the storage medium cannot be read or written."""

    pass


class LedgerStore:
    """
    Durable key/value persistence for a single user namespace.

    Collections are replaced as a whole on every write. Nothing is cached
    between calls, so callers always see the latest state on disk.
    """

    def __init__(self, namespace_path: Path) -> None:
        self.namespace_path = namespace_path

    def __collection_path(self, collection: str) -> Path:
        return self.namespace_path / f"{collection}.yaml"

    def __read_document(self, path: Path) -> Optional[dict[str, Any]]:
        if not path.is_file():
            return None
        try:
            document = load(path.read_text(), Loader=Loader)
        except (OSError, YAMLError) as e:
            raise LedgerStoreError(f"Unable to read {path}: {e}") from e
        if document is not None and not isinstance(document, dict):
            raise LedgerStoreError(f"Unexpected document layout in {path}")
        return document

    def __write_document(self, path: Path, document: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=path.parent, prefix=f".{path.stem}-", delete=False
            ) as temporary:
                temporary.write(dump(document, Dumper=Dumper, sort_keys=False))
                temporary_path = temporary.name
            os.replace(temporary_path, path)
        except (OSError, YAMLError) as e:
            raise LedgerStoreError(f"Unable to write {path}: {e}") from e

    def __convert_record_for_serialization(
        self, record: dict[str, Any]
    ) -> dict[str, Any]:
        serializable_record = dict(record)
        for field in DECIMAL_FIELDS:
            if field in serializable_record and serializable_record[field] is not None:
                serializable_record[field] = str(serializable_record[field])
        for field in DATETIME_FIELDS:
            if field in serializable_record:
                serializable_record[field] = time.datetime_to_iso_str_optional(
                    serializable_record[field]
                )
        serializable_record["sync_state"] = SyncState(
            serializable_record["sync_state"]
        ).value
        return serializable_record

    def __convert_record_for_deserialization(
        self, record: dict[str, Any]
    ) -> dict[str, Any]:
        deserializable_record = dict(record)
        try:
            for field in DECIMAL_FIELDS:
                if (
                    field in deserializable_record
                    and deserializable_record[field] is not None
                ):
                    deserializable_record[field] = Decimal(
                        str(deserializable_record[field])
                    )
            for field in DATETIME_FIELDS:
                if field in deserializable_record:
                    deserializable_record[field] = time.datetime_from_str_optional(
                        deserializable_record[field]
                    )
            deserializable_record["sync_state"] = SyncState(
                deserializable_record["sync_state"]
            )
        except (InvalidOperation, KeyError, ValueError) as e:
            raise LedgerStoreError(f"Corrupt record in store: {record!r}") from e
        return deserializable_record

    def read_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every record of a collection in insertion order."""
        document = self.__read_document(self.__collection_path(collection))
        if document is None or document.get(collection) is None:
            return []
        return [
            self.__convert_record_for_deserialization(record)
            for record in document[collection]
        ]

    def write_all(self, collection: str, records: list[Any]) -> None:
        """Replace a whole collection."""
        self.__write_document(
            self.__collection_path(collection),
            {
                collection: [
                    self.__convert_record_for_serialization(cast(dict[str, Any], record))
                    for record in records
                ]
            },
        )

    def read_history(self) -> list[LedgerEntry]:
        return cast(list[LedgerEntry], self.read_all(Collection.HISTORY))

    def write_history(self, history: list[LedgerEntry]) -> None:
        self.write_all(Collection.HISTORY, history)

    def read_goals(self) -> list[Goal]:
        return cast(list[Goal], self.read_all(Collection.GOALS))

    def write_goals(self, goals: list[Goal]) -> None:
        self.write_all(Collection.GOALS, goals)

    def read_net_income(self) -> Decimal:
        document = self.__read_document(self.namespace_path / NET_INCOME_FILE)
        if document is None or document.get("net_income") is None:
            return Decimal("0")
        try:
            return Decimal(str(document["net_income"]))
        except InvalidOperation as e:
            raise LedgerStoreError("Corrupt net income value in store") from e

    def write_net_income(self, net_income: Decimal) -> None:
        self.__write_document(
            self.namespace_path / NET_INCOME_FILE, {"net_income": str(net_income)}
        )

    def read_settings(self) -> AppSettings:
        settings = get_settings_template()
        document = self.__read_document(self.namespace_path / SETTINGS_FILE)
        if document is not None and document.get("settings") is not None:
            settings.update(document["settings"])  # type: ignore[typeddict-item]
        return settings

    def write_settings(self, settings: AppSettings) -> None:
        self.__write_document(
            self.namespace_path / SETTINGS_FILE, {"settings": dict(settings)}
        )
