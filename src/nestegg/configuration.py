# SPDX-License-Identifier: MIT

from pathlib import Path
from typing import NotRequired, Optional, TypedDict

from yaml import load

try:
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Loader  # type: ignore[assignment]
import platformdirs

APP_NAME = "nestegg"

CONFIG_PATH = platformdirs.user_config_path(APP_NAME)
APP_CONFIG_PATH = CONFIG_PATH / "config.yaml"
LOG_PATH = platformdirs.user_log_path(APP_NAME)
LOG_FILE_PATH = LOG_PATH / "nestegg.log"

# These will be set dynamically by load_data_path_configuration()
DATA_PATH: Path = platformdirs.user_data_path(APP_NAME)
DATA_USERS_DIR: Path = DATA_PATH / "users"

GUEST_NAMESPACE = "guest"

DEFAULT_API_BASE_URL = "http://localhost:8000/api"


class Configuration(TypedDict):
    api_base_url: str
    data_path: Optional[str]
    sync_interval_seconds: int
    initial_sync_delay_seconds: int
    request_timeout_seconds: float
    network_probe_interval_seconds: int
    sign_in_loading_timeout_seconds: int
    prune_remote_deletions: bool
    log_level: str
    log_json: bool
    log_to_file: NotRequired[bool]


def get_default_configuration() -> Configuration:
    return {
        "api_base_url": DEFAULT_API_BASE_URL,
        "data_path": None,
        "sync_interval_seconds": 300,
        "initial_sync_delay_seconds": 10,
        "request_timeout_seconds": 15.0,
        "network_probe_interval_seconds": 30,
        "sign_in_loading_timeout_seconds": 30,
        "prune_remote_deletions": False,
        "log_level": "WARNING",
        "log_json": False,
        "log_to_file": False,
    }


def load_data_path_configuration() -> None:
    """
    Load the configuration and set the DATA_PATH variables dynamically.

    This must be called after the config file exists and before any
    repositories are instantiated.
    """
    if not APP_CONFIG_PATH.is_file():
        # Config doesn't exist yet, use defaults
        return

    config: Optional[Configuration] = load(APP_CONFIG_PATH.read_text(), Loader=Loader)
    if config is None:
        return
    data_path_setting = config.get("data_path")

    if data_path_setting is not None:
        set_data_path(Path(data_path_setting))


def set_data_path(data_path: Path) -> None:
    global DATA_PATH, DATA_USERS_DIR

    DATA_PATH = data_path
    DATA_USERS_DIR = DATA_PATH / "users"
