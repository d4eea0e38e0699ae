"""Shared fixtures for the plugin engine tests."""

import json
import sys
from pathlib import Path
from types import ModuleType

import pytest

from sawmon import config
from sawmon.plugin import loader
from sawmon.plugin.installer import InstallError
from sawmon.plugin.loader import PluginLocation
from sawmon.plugin.manager import PluginManager
from sawmon.plugin.store import MemoryRecordStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh schema registry and config file per test, empty module cache."""
    monkeypatch.setattr(config, "_schemas", {})
    monkeypatch.setattr(config, "_config_file", tmp_path / "sawmon.toml")
    loader.clear_cache()
    yield
    loader.clear_cache()


def _make_module(name: str, dependencies=None, **attrs) -> ModuleType:
    module = ModuleType(name)
    if dependencies is not None:
        module.dependencies = dependencies
    for key, value in attrs.items():
        setattr(module, key, value)
    return module


@pytest.fixture
def make_module():
    """Factory for in-memory plugin modules."""
    return _make_module


class FakeInstaller:
    """Installer that 'installs' modules registered in sys.modules."""

    def __init__(self, monkeypatch):
        self._monkeypatch = monkeypatch
        self.available: set[str] = set()
        self.failing: set[str] = set()
        self.versions: dict[str, str] = {}
        self.installed: list[str] = []

    @staticmethod
    def module_name(name: str) -> str:
        return "fake_sawmon_" + name.replace("-", "_")

    def publish(self, name: str, module: ModuleType, version: str = "1.0.0") -> None:
        self._monkeypatch.setitem(sys.modules, self.module_name(name), module)
        self.available.add(name)
        self.versions[name] = version

    async def install(self, descriptor):
        self.installed.append(descriptor.name)
        if descriptor.name in self.failing or descriptor.name not in self.available:
            raise InstallError(f"No matching distribution found for {descriptor.name}")
        return self.resolve(descriptor)

    def resolve(self, descriptor):
        return PluginLocation(key=descriptor.name, module_name=self.module_name(descriptor.name))

    def read_version(self, location, module):
        return self.versions.get(location.key, "0.0.0")


@pytest.fixture
def installer(monkeypatch):
    return FakeInstaller(monkeypatch)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def core_module():
    return _make_module("fake_core", servers={"ping": lambda arg: "core"})


@pytest.fixture
def manager(installer, store, core_module):
    return PluginManager(installer=installer, store=store, core_module=core_module)


@pytest.fixture
def write_local_plugin(tmp_path):
    """Create a local plugin directory (manifest.json + entry point)."""

    def _write(dirname: str, name: str, source: str, version: str = "1.0.0") -> Path:
        plugin_dir = tmp_path / "plugins" / dirname
        plugin_dir.mkdir(parents=True)
        manifest = {"name": name, "version": version, "main": "plugin.py"}
        (plugin_dir / "manifest.json").write_text(json.dumps(manifest))
        (plugin_dir / "plugin.py").write_text(source)
        return plugin_dir

    return _write
