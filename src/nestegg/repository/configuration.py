# SPDX-License-Identifier: MIT

from copy import deepcopy
from typing import Optional

from yaml import dump, load

try:
    from yaml import CDumper as Dumper
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Dumper, Loader  # type: ignore[assignment]

from nestegg import configuration


class ConfigurationRepository:
    def __init__(self) -> None:
        self._config: Optional[configuration.Configuration] = None
        self.is_dirty = False

    @property
    def config(self) -> configuration.Configuration:
        if self._config is None:
            self.__load_data()
        if self._config is None:
            raise ValueError()
        return self._config

    def __load_data(self) -> None:
        self._config = load(configuration.APP_CONFIG_PATH.read_text(), Loader=Loader)

        if self._config is None:
            raise ValueError()

        # Back-fill settings introduced after the config file was written
        for key, value in configuration.get_default_configuration().items():
            if key not in self._config:
                self._config[key] = value  # type: ignore[literal-required]

    def __save_data(self, config: configuration.Configuration) -> None:
        configuration.APP_CONFIG_PATH.write_text(
            dump(dict(config), Dumper=Dumper, sort_keys=False)
        )

    def flush(self) -> None:
        if self._config is not None and self.is_dirty:
            self.__save_data(self._config)
            self.is_dirty = False

    def get_config(self) -> configuration.Configuration:
        return deepcopy(self.config)

    def update_config(
        self,
        api_base_url: Optional[str] = None,
        data_path: Optional[str] = None,
        remove_data_path: bool = False,
        sync_interval_seconds: Optional[int] = None,
        initial_sync_delay_seconds: Optional[int] = None,
        request_timeout_seconds: Optional[float] = None,
        network_probe_interval_seconds: Optional[int] = None,
        sign_in_loading_timeout_seconds: Optional[int] = None,
        prune_remote_deletions: Optional[bool] = None,
        log_level: Optional[str] = None,
        log_json: Optional[bool] = None,
        log_to_file: Optional[bool] = None,
    ) -> None:
        self.is_dirty = True

        if api_base_url is not None:
            self.config["api_base_url"] = api_base_url.rstrip("/")
        if data_path is not None:
            self.config["data_path"] = data_path
        if remove_data_path:
            self.config["data_path"] = None
        if sync_interval_seconds is not None:
            self.config["sync_interval_seconds"] = sync_interval_seconds
        if initial_sync_delay_seconds is not None:
            self.config["initial_sync_delay_seconds"] = initial_sync_delay_seconds
        if request_timeout_seconds is not None:
            self.config["request_timeout_seconds"] = request_timeout_seconds
        if network_probe_interval_seconds is not None:
            self.config["network_probe_interval_seconds"] = (
                network_probe_interval_seconds
            )
        if sign_in_loading_timeout_seconds is not None:
            self.config["sign_in_loading_timeout_seconds"] = (
                sign_in_loading_timeout_seconds
            )
        if prune_remote_deletions is not None:
            self.config["prune_remote_deletions"] = prune_remote_deletions
        if log_level is not None:
            self.config["log_level"] = log_level.upper()
        if log_json is not None:
            self.config["log_json"] = log_json
        if log_to_file is not None:
            self.config["log_to_file"] = log_to_file


CONFIGURATION_REPO = ConfigurationRepository()
