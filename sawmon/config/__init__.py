"""
Sawmon Configuration System - TOML-based settings for the engine and plugins.

This module provides:
- Schema declaration per config section (the engine, or a plugin by name)
- Runtime typed access with validation and auto-flush
- Config file generation from declared schemas

Example usage:
    from sawmon import config

    config.declare('sawmon-ip', {
        'timeout': config.field(float, 5.0, "Lookup timeout in seconds", min=0.1),
    })

    cfg = config.get('sawmon-ip')
    cfg.timeout          # Read
    cfg.timeout = 2.5    # Write (auto-flushes)
"""

from pathlib import Path
from typing import Any

from sawmon.config.runtime import ConfigProxy, ConfigRuntimeError
from sawmon.config.schema import ConfigField, SchemaError, ValidationError
from sawmon.config.toml_handler import generate_toml

# section name -> schema
_schemas: dict[str, dict[str, ConfigField]] = {}

_config_file = Path("config/sawmon.toml")


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


def field(
    type_: type,
    default: Any,
    description: str = "",
    min: Any = None,
    max: Any = None,
    choices: list[Any] | None = None,
) -> ConfigField:
    """
    Helper function to create a ConfigField.

    Example:
        field(int, 60, "Ping interval in seconds", min=1)
    """
    return ConfigField(
        type_=type_,
        default=default,
        description=description,
        min=min,
        max=max,
        choices=choices,
    )


def declare(section: str, schema: dict[str, ConfigField], replace: bool = False) -> None:
    """
    Declare the schema of a config section.

    Args:
        section: Section name (a plugin name, or "sawmon" for the engine)
        schema: field_name -> ConfigField
        replace: Overwrite an existing declaration instead of failing

    Raises:
        ConfigError: If the section is already declared and replace is False
    """
    if section in _schemas and not replace:
        raise ConfigError(f"Schema for section '{section}' already declared")

    for name, value in schema.items():
        if not isinstance(value, ConfigField):
            raise ConfigError(
                f"Setting '{name}' of section '{section}' is not a ConfigField"
            )

    _schemas[section] = dict(schema)


def undeclare(section: str) -> None:
    """Forget a section's schema. Values already in the file are left alone."""
    _schemas.pop(section, None)


def is_declared(section: str) -> bool:
    return section in _schemas


def get(section: str) -> ConfigProxy:
    """
    Get runtime configuration accessor for a section.

    Raises:
        ConfigError: If the section schema is not declared
    """
    if section not in _schemas:
        raise ConfigError(
            f"Schema for section '{section}' not declared. Call declare() first."
        )

    return ConfigProxy(section, _schemas[section], _config_file)


def set_config_file(path: Path | str) -> None:
    """Point every subsequent get() at another config file."""
    global _config_file
    _config_file = Path(path)


def get_config_file() -> Path:
    return _config_file


def render_defaults() -> str:
    """TOML text with every declared section at its defaults."""
    return generate_toml(_schemas)


__all__ = [
    "ConfigError",
    "ConfigField",
    "ConfigProxy",
    "ConfigRuntimeError",
    "SchemaError",
    "ValidationError",
    "declare",
    "field",
    "get",
    "get_config_file",
    "is_declared",
    "render_defaults",
    "set_config_file",
    "undeclare",
]
