"""
linkdoc configuration.

Settings come from a ``linkdoc.toml`` file, then from environment variables:

    # linkdoc.toml
    [linkdoc]
    database = "app.db"
    wal = true
    default_limit = 500
    log_level = "INFO"

Environment overrides:
    LINKDOC_DATABASE     Database path
    LINKDOC_LOG_LEVEL    Log level of the ``linkdoc`` logger

Typical startup:

    registry = connect(load_config())
    users = registry.register(User, "users")
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import LinkdocError
from .registry import Registry
from .store import Database

if TYPE_CHECKING:
    from collections.abc import Mapping

CONFIG_FILENAME = "linkdoc.toml"
ENV_DATABASE = "LINKDOC_DATABASE"
ENV_LOG_LEVEL = "LINKDOC_LOG_LEVEL"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


class ConfigError(LinkdocError):
    """Invalid configuration file or value."""


@dataclass
class LinkdocConfig:
    """
    Runtime settings.

    Attributes:
        database: Path of the SQLite database file
        wal: Use WAL journal mode
        default_limit: Limit applied to queries that set none
        log_level: Level of the ``linkdoc`` logger
    """

    database: str = "linkdoc.db"
    wal: bool = True
    default_limit: int | None = None
    log_level: str = "WARNING"

    def validate(self) -> None:
        """
        Raises:
            ConfigError: If a value is out of range
        """
        if not self.database:
            msg = "database must not be empty"
            raise ConfigError(msg)
        if self.default_limit is not None and self.default_limit < 1:
            msg = f"default_limit must be a positive integer, got {self.default_limit}"
            raise ConfigError(msg)
        if self.log_level.upper() not in _LOG_LEVELS:
            msg = f"Invalid log_level '{self.log_level}'. Must be one of: {', '.join(_LOG_LEVELS)}"
            raise ConfigError(msg)


_TYPES: dict[str, tuple[type, ...]] = {
    "database": (str,),
    "wal": (bool,),
    "default_limit": (int,),
    "log_level": (str,),
}


def _from_mapping(values: Mapping[str, Any], source: str) -> dict[str, Any]:
    known = {f.name for f in fields(LinkdocConfig)}
    result = {}
    for key, value in values.items():
        if key not in known:
            msg = f"{source}: unknown setting '{key}'"
            raise ConfigError(msg)
        expected = _TYPES[key]
        # bool is an int subclass; default_limit = true is still an error
        if not isinstance(value, expected) or (
            isinstance(value, bool) and bool not in expected
        ):
            msg = f"{source}: '{key}' must be {expected[0].__name__}, got {value!r}"
            raise ConfigError(msg)
        result[key] = value
    return result


def find_config_file(start: str | Path | None = None) -> Path | None:
    """
    Locate ``linkdoc.toml``.

    Args:
        start: A config file, or a directory to look in (default: cwd)
    """
    path = Path(start) if start is not None else Path.cwd()
    if path.is_file():
        return path
    candidate = path / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def load_config(
    path: str | Path | None = None,
    *,
    ignore_config: bool = False,
    environ: Mapping[str, str] | None = None,
) -> LinkdocConfig:
    """
    Load configuration.

    Args:
        path: Config file or directory containing ``linkdoc.toml``
        ignore_config: Skip the config file, use defaults and environment
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file is not valid TOML or holds invalid settings
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    config_file = None if ignore_config else find_config_file(path)
    if config_file is not None:
        try:
            with config_file.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {config_file}: {e}"
            raise ConfigError(msg) from e
        section = data.get("linkdoc", {})
        if not isinstance(section, dict):
            msg = f"{config_file}: [linkdoc] must be a table"
            raise ConfigError(msg)
        values.update(_from_mapping(section, str(config_file)))

    if environ.get(ENV_DATABASE):
        values["database"] = environ[ENV_DATABASE]
    if environ.get(ENV_LOG_LEVEL):
        values["log_level"] = environ[ENV_LOG_LEVEL]

    config = LinkdocConfig(**values)
    config.validate()
    return config


def configure_logging(level: str | int) -> None:
    """Set the level of the ``linkdoc`` package logger."""
    if isinstance(level, str):
        level = level.upper()
    logging.getLogger("linkdoc").setLevel(level)


def connect(config: LinkdocConfig | None = None) -> Registry:
    """
    Open the configured database and return an empty registry bound to it.
    """
    config = config or load_config()
    configure_logging(config.log_level)
    database = Database(config.database, wal=config.wal)
    return Registry(database, default_limit=config.default_limit)
