# SPDX-License-Identifier: MIT

import uuid
from typing import TypeAlias

EntityId: TypeAlias = str

RemoteId: TypeAlias = int


def generate_entity_id() -> EntityId:
    return str(uuid.uuid4())
