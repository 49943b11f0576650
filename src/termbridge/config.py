from pathlib import Path

import yaml
from pydantic import ValidationError

from .terminal_server import TerminalServerConfig


class ConfigError(Exception):

    def __init__(self, message: str):
        super().__init__(message)


def load_config(path: str | Path | None = None) -> TerminalServerConfig:
    """Loads the server configuration from a YAML file.

    The file holds a mapping of `TerminalServerConfig` fields; missing fields keep their defaults.
    An empty file is the same as no file.

    :param path: The YAML file. If None, the defaults are returned.
    :raises ConfigError: If the file cannot be read, is not valid YAML or does not match the schema.
    """

    if path is None:
        return TerminalServerConfig()

    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Failed to load config file {path}: expected a mapping, got {type(data).__name__}")

    try:
        return TerminalServerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
