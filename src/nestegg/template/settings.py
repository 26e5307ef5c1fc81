# SPDX-License-Identifier: MIT

from nestegg.model.settings import AppSettings


def get_settings_template() -> AppSettings:
    return {
        "profile_picture": "",
        "voice_notifications_enabled": True,
        "reminder_frequency": "weekly",
        "theme": "light",
    }
