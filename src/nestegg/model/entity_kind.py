# SPDX-License-Identifier: MIT

from enum import Enum


class EntityKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    GOAL = "goal"

    @property
    def is_entry(self) -> bool:
        return self is not EntityKind.GOAL


class Collection:
    HISTORY = "history"
    GOALS = "goals"


def collection_for(kind: EntityKind) -> str:
    if kind is EntityKind.GOAL:
        return Collection.GOALS
    return Collection.HISTORY
