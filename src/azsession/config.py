"""Configuration for azsession.

Settings are resolved in priority order (highest first):
1. Environment variables (AZSESSION_*)
2. Optional TOML file (~/.azsession/config.toml, [azsession] table)
3. Built-in defaults

The config file only holds defaults for endpoints, timeouts and billing
query parameters. It never holds secrets or session state: the active
subscription lives in memory only and is lost when the process exits.

Example config.toml:
    [azsession]
    az_path = "/usr/bin/az"
    command_timeout = 60
    default_currency = "EUR"
    default_locale = "en-GB"
    default_region = "GB"
"""

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration cannot be loaded."""

    pass


@dataclass
class SessionConfig:
    """Resolved azsession settings."""

    az_path: str = "az"
    command_timeout: int = 120
    http_timeout: int = 30
    billing_base_url: str = "https://management.azure.com"
    token_endpoint: str = "https://login.microsoftonline.com/{tenant_id}/oauth2/token"
    resource: str = "https://management.azure.com/"
    default_currency: str = "USD"
    default_locale: str = "en-US"
    default_region: str = "US"
    usage_api_version: str = "2015-06-01-preview"
    ratecard_api_version: str = "2016-08-31-preview"

    DEFAULT_CONFIG_DIR = Path.home() / ".azsession"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"
    ENV_PREFIX = "AZSESSION_"

    @classmethod
    def load(cls, custom_path: str | None = None) -> "SessionConfig":
        """Load configuration from file and environment.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            SessionConfig instance

        Raises:
            ConfigError: If the file exists but cannot be parsed, or a value
                has the wrong type
        """
        values: dict[str, Any] = {}

        config_path = Path(custom_path).expanduser() if custom_path else cls.DEFAULT_CONFIG_FILE
        if config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    data = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"Failed to load config file {config_path}: {e}") from e
            values.update(data.get("azsession", {}))
            logger.debug(f"Loaded config from: {config_path}")
        elif custom_path:
            raise ConfigError(f"Config file not found: {config_path}")

        known = {f.name: f for f in fields(cls)}
        for name in known:
            env_value = os.environ.get(f"{cls.ENV_PREFIX}{name.upper()}")
            if env_value is not None:
                values[name] = env_value

        unknown = sorted(set(values) - set(known))
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for name, value in values.items():
            if name not in known:
                continue
            if known[name].type in (int, "int"):
                try:
                    value = int(value)
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"{name} must be an integer, got: {value!r}") from e
            kwargs[name] = value

        return cls(**kwargs)


__all__ = ["ConfigError", "SessionConfig"]
