# SPDX-License-Identifier: MIT

import atexit

from nestegg.repository.configuration import CONFIGURATION_REPO


def flush() -> None:
    # Ledger collections and the session are written through on every change
    CONFIGURATION_REPO.flush()


def register_cleanup() -> None:
    atexit.register(flush)
