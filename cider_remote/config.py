"""
Cider remote configuration system.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


# Player WebSocket endpoint
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 26369

# Valid log levels
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Environment variable mappings
ENV_MAPPINGS = {
    # Connection
    "CIDER_HOST": ("connection", "host"),
    "CIDER_PORT": ("connection", "port"),
    "CIDER_REQUEST_TIMEOUT": ("connection", "request_timeout"),
    # Client
    "CIDER_CLIENT_NAME": ("client", "name"),
    "CIDER_IDENTIFY": ("client", "identify"),
    "CIDER_ARTWORK_SIZE": ("client", "artwork_size"),
    "CIDER_LEGACY_COMMANDS": ("client", "legacy_commands"),
    # Logging
    "CIDER_LOG_LEVEL": ("logging", "level"),
}

INT_ENV_VARS = {"CIDER_PORT", "CIDER_ARTWORK_SIZE"}
FLOAT_ENV_VARS = {"CIDER_REQUEST_TIMEOUT"}
BOOL_ENV_VARS = {"CIDER_IDENTIFY", "CIDER_LEGACY_COMMANDS"}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class ConnectionConfig:
    """Player endpoint configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    request_timeout: Optional[float] = None  # seconds, None waits indefinitely

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"


@dataclass
class ClientConfig:
    """How this client presents itself and talks to the player."""

    name: str = "cider-remote"
    description: str = "Python remote control for Cider"
    author: str = ""
    identify: bool = False  # send identify handshake and wait for ack
    artwork_size: Optional[int] = None  # None = size advertised by the player
    legacy_commands: bool = False  # {"type", "data"} envelope for seek/volume


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete cider-remote configuration."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_port(port: int) -> bool:
    """Validate port number."""
    return isinstance(port, int) and 1 <= port <= 65535


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    if not config.connection.host:
        errors.append("Player host is required")
    if not validate_port(config.connection.port):
        errors.append(f"Invalid player port: {config.connection.port}")

    timeout = config.connection.request_timeout
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        errors.append(f"Invalid request timeout: {timeout}")

    if not config.client.name:
        errors.append("Client name is required")

    size = config.client.artwork_size
    if size is not None and (not isinstance(size, int) or size <= 0):
        errors.append(f"Invalid artwork size: {size}")

    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """
    Load configuration from environment variables.

    Returns:
        Configuration dictionary with values from environment
    """
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue

        if env_var in INT_ENV_VARS:
            try:
                value = int(value)
            except ValueError:
                logger.warning(f"Invalid integer for {env_var}: {value}")
                continue
        elif env_var in FLOAT_ENV_VARS:
            try:
                value = float(value)
            except ValueError:
                logger.warning(f"Invalid number for {env_var}: {value}")
                continue
        elif env_var in BOOL_ENV_VARS:
            value = value.lower() in ("true", "1", "yes", "on")

        _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    # Connection
    if "connection" in d:
        c = d["connection"] or {}
        config.connection.host = c.get("host", config.connection.host)
        config.connection.port = c.get("port", config.connection.port)
        config.connection.request_timeout = c.get(
            "request_timeout", config.connection.request_timeout
        )

    # Client
    if "client" in d:
        cl = d["client"] or {}
        config.client.name = cl.get("name", config.client.name)
        config.client.description = cl.get("description", config.client.description)
        config.client.author = cl.get("author", config.client.author)
        config.client.identify = cl.get("identify", config.client.identify)
        config.client.artwork_size = cl.get("artwork_size", config.client.artwork_size)
        config.client.legacy_commands = cl.get(
            "legacy_commands", config.client.legacy_commands
        )

    # Logging
    if "logging" in d:
        config.logging.level = (d["logging"] or {}).get("level", config.logging.level)

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults

    Args:
        config_path: Path to YAML config file
        cli_args: Dictionary of CLI arguments

    Returns:
        Merged Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}

    # Convert to Config object (fills in defaults)
    config = dict_to_config(merged)

    validate_config(config)

    return config
