# SPDX-License-Identifier: MIT

from yaml import dump

try:
    from yaml import CDumper as Dumper
except ImportError:
    from yaml import Dumper  # type: ignore[assignment]

from nestegg import configuration
from nestegg.logging_config import configure_logging
from nestegg.repository.configuration import CONFIGURATION_REPO


def initialize() -> None:
    configuration.CONFIG_PATH.mkdir(parents=True, exist_ok=True)
    configuration.load_data_path_configuration()
    configuration.DATA_PATH.mkdir(parents=True, exist_ok=True)
    configuration.DATA_USERS_DIR.mkdir(parents=True, exist_ok=True)

    __ensure_config_files()

    config = CONFIGURATION_REPO.get_config()
    configure_logging(
        level=config["log_level"],
        json_output=config["log_json"],
        log_file=configuration.LOG_FILE_PATH if config.get("log_to_file") else None,
    )


def __ensure_config_files() -> None:
    if not configuration.APP_CONFIG_PATH.is_file():
        configuration.APP_CONFIG_PATH.write_text(
            dump(dict(configuration.get_default_configuration()), Dumper=Dumper)
        )
