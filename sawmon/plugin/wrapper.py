"""
Plugin Wrapper.

In-memory pairing of a loaded plugin module with its identity record.
"""

from dataclasses import dataclass
from types import ModuleType
from typing import Any

from sawmon.plugin.manifest import Manifest, PluginRecord
from sawmon.utils import is_namespace


@dataclass
class PluginWrapper:
    """
    A registered plugin.

    Attributes:
        module: The loaded plugin module (its exposed surface)
        record: Durable record, or the synthetic record of the built-in plugin
        manifest: manifest.json of a local plugin, None otherwise
    """

    module: ModuleType | Any
    record: PluginRecord
    manifest: Manifest | None = None

    @property
    def name(self) -> str:
        """Name other plugins use to depend on this one."""
        if self.manifest is not None:
            return self.manifest.name
        return self.record.name

    @property
    def identity(self) -> str | None:
        return self.record.identity

    @property
    def dependencies(self) -> list[str]:
        deps = getattr(self.module, "dependencies", None)
        if not deps or isinstance(deps, str):
            return []
        return [str(d) for d in deps]

    def capability(self, name: str) -> Any:
        """The capability namespace exposed under name, or None."""
        namespace = getattr(self.module, name, None)
        return namespace if is_namespace(namespace) else None

    def __repr__(self) -> str:
        return f"PluginWrapper({self.name}@{self.record.version})"
