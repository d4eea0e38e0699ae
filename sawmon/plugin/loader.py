"""
Dynamic Plugin Loader.

This module turns a resolved plugin location into a loaded module.

Key features:
- importlib integration for installed packages and local directories
- Module caching keyed by plugin name
- Unloading of local modules on removal
"""

import importlib
import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

from sawmon.plugin.manifest import Manifest


class LoaderError(Exception):
    """Raised when a plugin module cannot be resolved or executed."""

    pass


@dataclass(frozen=True)
class PluginLocation:
    """
    Where an installed plugin's code lives.

    Attributes:
        key: Cache key, the name the plugin was installed under
        module_name: Importable module name (registry installs)
        path: Plugin directory (local installs)
        manifest: Parsed manifest.json (local installs)
    """

    key: str
    module_name: str | None = None
    path: Path | None = None
    manifest: Manifest | None = None

    @property
    def is_local(self) -> bool:
        return self.path is not None


# plugin key -> module
_module_cache: dict[str, ModuleType] = {}


def _local_module_name(manifest: Manifest) -> str:
    return "sawmon_plugin_" + manifest.name.replace("-", "_")


def load_plugin_module(location: PluginLocation) -> ModuleType:
    """
    Load the module at a plugin location.

    Raises:
        LoaderError: If loading fails
    """
    if location.key in _module_cache:
        return _module_cache[location.key]

    if location.is_local:
        module = _load_from_path(location)
    elif location.module_name:
        module = _load_from_import(location.module_name)
    else:
        raise LoaderError(f"Location for {location.key} names neither a path nor a module")

    _module_cache[location.key] = module
    return module


def _load_from_import(module_name: str) -> ModuleType:
    # pip may have just written new files into site-packages
    importlib.invalidate_caches()
    try:
        return importlib.import_module(module_name)
    except Exception as e:
        raise LoaderError(f"Failed to import plugin module {module_name}: {e}") from e


def _load_from_path(location: PluginLocation) -> ModuleType:
    manifest = location.manifest
    if manifest is None:
        raise LoaderError(f"Local plugin {location.key} has no manifest")

    entry_point = location.path / manifest.main
    if not entry_point.is_file():
        raise LoaderError(f"Entry point {manifest.main} missing from {location.path}")

    module_name = _local_module_name(manifest)
    spec = importlib.util.spec_from_file_location(module_name, entry_point)
    if spec is None or spec.loader is None:
        raise LoaderError(f"{entry_point} is not an importable Python file")
    module = importlib.util.module_from_spec(spec)

    # Registered before execution so the module can import itself
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise LoaderError(
            f"Plugin {manifest.name} failed while executing {manifest.main}: {e}"
        ) from e
    return module


def unload_plugin_module(location: PluginLocation) -> None:
    """
    Forget a loaded plugin module.

    Local modules are removed from sys.modules as well; installed packages stay
    importable since other code may hold them.
    """
    _module_cache.pop(location.key, None)

    if location.is_local and location.manifest is not None:
        sys.modules.pop(_local_module_name(location.manifest), None)


def is_module_cached(key: str) -> bool:
    return key in _module_cache


def clear_cache() -> None:
    """Clear all cached plugin modules."""
    _module_cache.clear()
