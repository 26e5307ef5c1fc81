# SPDX-License-Identifier: MIT

from typing import Literal, TypedDict

ReminderFrequency = Literal["daily", "weekly", "monthly", "none"]
Theme = Literal["light", "dark", "maroon"]


class AppSettings(TypedDict):
    profile_picture: str
    voice_notifications_enabled: bool
    reminder_frequency: ReminderFrequency
    theme: Theme
