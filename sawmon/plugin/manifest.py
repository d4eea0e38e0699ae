"""
Plugin Descriptors, Records and Manifests.

This module provides the data types that identify a plugin.

Key features:
- PluginDescriptor: what to install (name, optional version, local flag)
- PluginRecord: what is installed (durable identity, name, version)
- manifest.json parsing and validation for local plugin directories
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# A leading "." marks a path relative to the plugins directory ("./plugins/x")
LOCAL_MARKER = "."

CORE_PLUGIN_NAME = "core"
CORE_PLUGIN_VERSION = "0.0.0"


class ManifestError(Exception):
    """Base exception for manifest-related errors."""

    pass


class ValidationError(ManifestError):
    """Raised when manifest validation fails."""

    pass


@dataclass
class PluginDescriptor:
    """
    Installation request for a plugin.

    Attributes:
        name: Package name, or a "./"-prefixed directory for local plugins
        version: Version to pin, if any
        local_install: Install from the filesystem instead of the registry
        identity: Store key, set only when re-installing a stored record
    """

    name: str
    version: str | None = None
    local_install: bool = False
    identity: str | None = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError(f"Invalid plugin name: {self.name!r}")
        if self.name.startswith(LOCAL_MARKER):
            self.local_install = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginDescriptor":
        """
        Build a descriptor from a request payload.

        Accepts "localInstall" as an alias of "local_install".
        """
        if "name" not in data:
            raise ValidationError("Missing required field: name")
        return cls(
            name=data["name"],
            version=data.get("version") or None,
            local_install=bool(data.get("local_install", data.get("localInstall", False))),
            identity=data.get("identity"),
        )

    @classmethod
    def from_record(cls, record: "PluginRecord") -> "PluginDescriptor":
        return cls(name=record.name, version=record.version, identity=record.identity)


@dataclass
class PluginRecord:
    """
    Durable record of an installed plugin.

    Attributes:
        name: Plugin name as it was installed (unique)
        version: Installed version
        identity: Opaque store key, None until persisted
    """

    name: str
    version: str
    identity: str | None = None


def core_record() -> PluginRecord:
    """Synthetic record carried by the built-in plugin."""
    return PluginRecord(name=CORE_PLUGIN_NAME, version=CORE_PLUGIN_VERSION)


# Required manifest keys: pattern the value must fully match, and the message
_MANIFEST_RULES = {
    "name": (
        re.compile(r"[a-z0-9-]+"),
        "Invalid plugin name: {!r}. Use lowercase letters, digits and hyphens",
    ),
    "version": (
        re.compile(r"\d+\.\d+\.\d+"),
        "Invalid version: {!r}. Expected MAJOR.MINOR.PATCH, e.g. '1.0.0'",
    ),
    "main": (
        re.compile(r".+\.py"),
        "Invalid main entry point: {!r}. Expected a .py file",
    ),
}


@dataclass
class Manifest:
    """
    A local plugin's manifest.json.

    Attributes:
        name: Plugin name, also its wrapper name once registered
        version: Plugin version, recorded on installation
        main: Entry point file, relative to the plugin directory
    """

    name: str
    version: str
    main: str
    description: str = ""
    author: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        validate_manifest(data)
        return cls(
            name=data["name"],
            version=data["version"],
            main=data["main"],
            description=data.get("description", ""),
            author=data.get("author", ""),
        )


def validate_manifest(data: Any) -> None:
    """
    Check decoded manifest.json content.

    Raises:
        ValidationError: On the first missing or malformed key
    """
    if not isinstance(data, dict):
        raise ValidationError("Manifest must be a JSON object")

    for key, (pattern, message) in _MANIFEST_RULES.items():
        if key not in data:
            raise ValidationError(f"Missing required field: {key}")
        value = data[key]
        if not isinstance(value, str) or not pattern.fullmatch(value):
            raise ValidationError(message.format(value))

    for key in ("description", "author"):
        if not isinstance(data.get(key, ""), str):
            raise ValidationError(f"'{key}' must be a string")


def parse_manifest(manifest_path: Path) -> Manifest:
    """
    Read and validate the manifest.json of a plugin directory.

    Raises:
        ManifestError: If the file is missing, unreadable or not JSON
        ValidationError: If its content is not a valid manifest
    """
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest file not found: {manifest_path}") from e
    except OSError as e:
        raise ManifestError(f"Cannot read {manifest_path}: {e}") from e
    except ValueError as e:
        raise ManifestError(f"Failed to parse manifest JSON in {manifest_path}: {e}") from e

    return Manifest.from_dict(data)
