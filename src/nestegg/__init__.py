# SPDX-License-Identifier: MIT

from nestegg.cleanup import register_cleanup
from nestegg.initialize import initialize
from nestegg.terminal.app import run


def main() -> None:
    initialize()
    register_cleanup()
    run()


if __name__ == "__main__":
    main()
