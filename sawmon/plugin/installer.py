"""
Plugin Installation.

This module provides the installer adapter used by the plugin manager.

Key features:
- Registry installs through ``python -m pip install``
- Local installs from a directory carrying a manifest.json
- Subprocess execution with timeout
- Version lookup from installed distribution metadata
"""

import asyncio
import importlib.metadata
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Protocol

import structlog

from sawmon.plugin.loader import PluginLocation
from sawmon.plugin.manifest import ManifestError, PluginDescriptor, parse_manifest

logger = structlog.get_logger(__name__)

FALLBACK_VERSION = "0.0.0"


class InstallError(Exception):
    """Raised when the underlying package installation fails."""

    pass


class Installer(Protocol):
    """What the plugin manager needs from an installer."""

    async def install(self, descriptor: PluginDescriptor) -> PluginLocation: ...

    def resolve(self, descriptor: PluginDescriptor) -> PluginLocation: ...

    def read_version(self, location: PluginLocation, module: ModuleType) -> str: ...


def module_name_for(package: str) -> str:
    """
    Importable module name for a distribution name.

    "sawmon-ip" -> "sawmon_ip"
    """
    return re.sub(r"[-.]+", "_", package).lower()


class PipInstaller:
    """
    Installs plugins with pip.

    Registry plugins are pip-installed by name (pinned when a version is
    given) and imported by module name. Local plugins are loaded straight from
    their directory; only their requirements.txt, if any, goes through pip.
    """

    def __init__(
        self,
        plugins_dir: Path,
        timeout: float = 300.0,
        python: str | None = None,
    ):
        """
        Args:
            plugins_dir: Base directory local plugin names are relative to
            timeout: Seconds a single pip run may take
            python: Interpreter whose pip is used (default: the running one)
        """
        self.plugins_dir = Path(plugins_dir)
        self.timeout = timeout
        self.python = python or sys.executable

    def resolve(self, descriptor: PluginDescriptor) -> PluginLocation:
        """
        Resolve where an installed plugin's code lives.

        Raises:
            InstallError: If a local plugin directory or its manifest is unusable
        """
        if descriptor.local_install:
            path = (self.plugins_dir / descriptor.name).resolve()
            if not path.is_dir():
                raise InstallError(f"Plugin directory not found: {path}")
            try:
                manifest = parse_manifest(path / "manifest.json")
            except ManifestError as e:
                raise InstallError(f"Invalid plugin at {path}: {e}") from e
            return PluginLocation(key=descriptor.name, path=path, manifest=manifest)

        return PluginLocation(
            key=descriptor.name, module_name=module_name_for(descriptor.name)
        )

    async def install(self, descriptor: PluginDescriptor) -> PluginLocation:
        """
        Install a plugin and return its location.

        Raises:
            InstallError: If installation fails
        """
        if descriptor.local_install:
            location = self.resolve(descriptor)
            requirements = location.path / "requirements.txt"
            if requirements.exists():
                await self._pip("-r", str(requirements))
            return location

        requirement = descriptor.name
        if descriptor.version:
            requirement = f"{descriptor.name}=={descriptor.version}"
        await self._pip(requirement)
        return self.resolve(descriptor)

    def read_version(self, location: PluginLocation, module: ModuleType) -> str:
        """
        Version of an installed plugin, from its own metadata.

        Order: manifest.json (local), distribution metadata, module __version__.
        """
        if location.manifest is not None:
            return location.manifest.version

        try:
            return importlib.metadata.version(location.key)
        except importlib.metadata.PackageNotFoundError:
            pass

        version = getattr(module, "__version__", None)
        if isinstance(version, str) and version:
            return version

        logger.warning("No version metadata for plugin", plugin=location.key)
        return FALLBACK_VERSION

    async def _pip(self, *args: str) -> None:
        cmd = [
            self.python,
            "-m",
            "pip",
            "install",
            "--disable-pip-version-check",
            "--no-input",
            *args,
        ]
        logger.debug("Running pip", command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise InstallError(f"Failed to start pip: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise InstallError(
                f"pip install {' '.join(args)} timed out after {self.timeout} seconds"
            ) from e

        if process.returncode != 0:
            output = (stderr or stdout or b"").decode(errors="replace").strip()
            raise InstallError(
                f"pip install {' '.join(args)} failed with exit code "
                f"{process.returncode}: {output}"
            )
