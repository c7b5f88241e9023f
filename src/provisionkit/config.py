"""Configuration management for provisionkit install settings."""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provisionkit.actions.errors import ProvisionError
from provisionkit.model.settings import InitSystem, InstallSettings

logger = logging.getLogger(__name__)

CONFIG_ENV = "PROVISIONKIT_CONFIG"
CONFIG_FILENAME = "config.yaml"


class ConfigError(ProvisionError):
    """The config file is unreadable or does not describe valid settings."""


def default_init_system() -> InitSystem:
    """Supervisor assumed when neither the config nor a flag names one."""
    if sys.platform == "darwin":
        return InitSystem.LAUNCHD
    return InitSystem.SYSTEMD


class ConfigManager:
    """Loads install settings from a YAML file.

    Lookup order for the config directory: explicit argument, then
    $PROVISIONKIT_CONFIG, then ~/.provisionkit. A missing file is not an
    error; every setting has a default.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        if config_dir is None:
            env_config = os.getenv(CONFIG_ENV)
            if env_config:
                config_dir = Path(env_config).expanduser().resolve()
            else:
                config_dir = Path.home() / ".provisionkit"

        self.config_dir = config_dir
        self.config_file = config_dir / CONFIG_FILENAME

    def load_raw(self) -> dict[str, Any]:
        """Load the YAML mapping, or {} when there is no config file."""
        if not self.config_file.exists():
            logger.debug("No config file at %s, using defaults", self.config_file)
            return {}

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {self.config_file}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_file} must contain a mapping, got {type(data).__name__}")
        return data

    def load_settings(self, **overrides: Any) -> InstallSettings:
        """Build settings from defaults, the config file and overrides.

        Overrides set to None are ignored so unset CLI flags fall through
        to the file.
        """
        data: dict[str, Any] = {"init": default_init_system().value}
        data.update(self.load_raw())
        data.update({key: value for key, value in overrides.items() if value is not None})

        try:
            return InstallSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings in {self.config_file}: {e}") from e

