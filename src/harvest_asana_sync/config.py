"""Configuration management for the Harvest to Asana synchronizer."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError

from harvest_asana_sync.exceptions import ConfigError
from harvest_asana_sync.sync.fetcher import DEFAULT_LOOKBACK_DAYS
from harvest_asana_sync.sync.resolver import DEFAULT_FIELD_NAME
from harvest_asana_sync.utils.http import DEFAULT_TIMEOUT_SECONDS
from harvest_asana_sync.utils.logging import DEFAULT_LOG_DIR
from harvest_asana_sync.utils.storage import DEFAULT_DATA_DIR

DEFAULT_CONFIG_FILE = Path.home() / ".harvest-asana-sync" / "config.yaml"

# (yaml section, yaml key) -> settings field
YAML_KEYS = {
    ("harvest", "api_token"): "harvest_api_token",
    ("harvest", "account_id"): "harvest_account_id",
    ("asana", "api_token"): "asana_api_token",
    ("asana", "custom_field_name"): "custom_field_name",
    ("sync", "lookback_days"): "lookback_days",
    ("sync", "http_timeout"): "http_timeout",
    ("paths", "data_dir"): "data_dir",
    ("paths", "log_dir"): "log_dir",
}

ENV_KEYS = {
    "HARVEST_API_TOKEN": "harvest_api_token",
    "HARVEST_ACCOUNT_ID": "harvest_account_id",
    "ASANA_API_TOKEN": "asana_api_token",
    "ASANA_CUSTOM_FIELD_NAME": "custom_field_name",
    "SYNC_LOOKBACK_DAYS": "lookback_days",
    "SYNC_HTTP_TIMEOUT": "http_timeout",
    "SYNC_DATA_DIR": "data_dir",
    "SYNC_LOG_DIR": "log_dir",
}

REQUIRED = {
    "harvest_api_token": "HARVEST_API_TOKEN",
    "harvest_account_id": "HARVEST_ACCOUNT_ID",
    "asana_api_token": "ASANA_API_TOKEN",
}


class PathSettings(BaseModel):
    """Where the ledger and the logs live. Needs no credentials."""

    required: ClassVar[dict[str, str]] = {}

    data_dir: Path = DEFAULT_DATA_DIR
    log_dir: Path = DEFAULT_LOG_DIR

    @classmethod
    def load(
        cls,
        config_file: Path | None = None,
        env_file: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "PathSettings":
        """Build settings from a YAML file and the environment.

        Environment variables win over the YAML file. A .env file is loaded
        into the process environment first, without overriding variables
        that are already set.

        Args:
            config_file: YAML settings file. Defaults to ~/.harvest-asana-sync/config.yaml
                when it exists.
            env_file: .env file. Defaults to the nearest .env from the working directory.
            environ: Variables to read instead of os.environ (skips .env loading).

        Returns:
            Validated settings.

        Raises:
            ConfigError: If required settings are missing or a value is invalid.
        """
        if environ is None:
            load_dotenv(env_file or find_dotenv(usecwd=True))
            environ = os.environ

        values = _read_yaml(config_file)
        for env_name, field_name in ENV_KEYS.items():
            value = environ.get(env_name)
            if value:
                values[field_name] = value

        missing = [env_name for field_name, env_name in cls.required.items() if not values.get(field_name)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        try:
            settings = cls(**values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigError(f"Invalid settings: {problems}") from e

        settings.data_dir = settings.data_dir.expanduser()
        settings.log_dir = settings.log_dir.expanduser()
        return settings


class Settings(PathSettings):
    """Runtime settings: credentials, field name, window and paths."""

    required: ClassVar[dict[str, str]] = REQUIRED

    harvest_api_token: str = Field(min_length=1)
    harvest_account_id: str = Field(min_length=1)
    asana_api_token: str = Field(min_length=1)
    custom_field_name: str = DEFAULT_FIELD_NAME
    lookback_days: int = Field(default=DEFAULT_LOOKBACK_DAYS, ge=1)
    http_timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)


def _read_yaml(config_file: Path | None) -> dict[str, Any]:
    """Flatten the sections of the YAML settings file into field names."""
    explicit = config_file is not None
    path = config_file or DEFAULT_CONFIG_FILE

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file {path} does not exist")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    values: dict[str, Any] = {}
    for (section, key), field_name in YAML_KEYS.items():
        section_data = data.get(section) or {}
        if isinstance(section_data, dict) and section_data.get(key) is not None:
            value = section_data[key]
            # YAML reads a numeric account ID as int
            values[field_name] = str(value) if field_name in REQUIRED else value
    return values
