# SPDX-License-Identifier: MIT

from decimal import Decimal
from typing import Optional, TypedDict


class User(TypedDict):
    id: int
    name: Optional[str]
    email: Optional[str]
    net_income: Optional[Decimal]
    profile_picture: Optional[str]
    voice_notifications_enabled: bool
    reminder_frequency: str
    theme: str


class SessionData(TypedDict):
    token: Optional[str]
    user: Optional[User]
