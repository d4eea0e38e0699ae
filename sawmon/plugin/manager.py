"""
Plugin Manager.

This module provides the plugin registry and its lifecycle.

Key features:
- Registry of loaded plugin wrappers, seeded with the built-in plugin
- Runtime install/remove with record store bookkeeping
- Dependency-ordered capability lookup
- Concurrent, failure-isolated operation batches
"""

import asyncio
from collections.abc import Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from types import ModuleType
from typing import Any

import structlog

from sawmon import config
from sawmon.plugin.hooks import HookError, HookType, execute_hook
from sawmon.plugin.installer import Installer, InstallError
from sawmon.plugin.invoker import BatchResult, run_batch
from sawmon.plugin.loader import (
    LoaderError,
    PluginLocation,
    load_plugin_module,
    unload_plugin_module,
)
from sawmon.plugin.manifest import PluginDescriptor, PluginRecord, core_record
from sawmon.plugin.ordering import (
    TOPOLOGICAL,
    DependencyCycleError,
    order,
    topological_order,
)
from sawmon.plugin.store import RecordNotFoundError, RecordStore, StoreError
from sawmon.plugin.wrapper import PluginWrapper
from sawmon.utils import namespace_get

logger = structlog.get_logger(__name__)


class PluginError(Exception):
    """Base exception for registry errors."""

    pass


@dataclass
class InstallResult:
    """
    Outcome of one add_plugin call.

    Attributes:
        descriptor: What was asked for
        record: The registered plugin's record, if installation succeeded
        error: Why it failed, otherwise
    """

    descriptor: PluginDescriptor
    record: PluginRecord | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Failures contained at the plugin boundary during add_plugin
_INSTALL_FAILURES = (
    InstallError,
    LoaderError,
    HookError,
    StoreError,
    PluginError,
    config.ConfigError,
)


class PluginManager:
    """
    Plugin registry and orchestrator.

    Owns the list of loaded plugin wrappers. Mutations (add/remove) are
    serialized by a lock; readers work on a snapshot of the list.
    """

    def __init__(
        self,
        installer: Installer,
        store: RecordStore,
        core_module: ModuleType | None = None,
        ordering: str = TOPOLOGICAL,
        operation_timeout: float | None = None,
        hook_timeout: float | None = 60.0,
    ):
        """
        Args:
            installer: Installs and locates plugin code
            store: Durable plugin records
            core_module: Built-in plugin (default: sawmon.plugins.core)
            ordering: Dependency ordering strategy ("topological" or "pairwise")
            operation_timeout: Seconds a plugin operation may take in run()
            hook_timeout: Seconds a setup/teardown hook may take
        """
        if core_module is None:
            from sawmon.plugins import core as core_module

        self.installer = installer
        self.store = store
        self.core_module = core_module
        self.ordering = ordering
        self.operation_timeout = operation_timeout
        self.hook_timeout = hook_timeout

        self._plugins: list[PluginWrapper] = []
        self._locations: dict[str, PluginLocation] = {}
        # Names being loaded or set up; the wrapper once it is built
        self._pending: dict[str, PluginWrapper | None] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def plugins(self) -> tuple[PluginWrapper, ...]:
        """Registered wrappers in registration order."""
        return tuple(self._plugins)

    def get_plugin(self, name: str) -> PluginWrapper | None:
        return next((w for w in self._plugins if w.name == name), None)

    async def initialize(self) -> list[InstallResult]:
        """
        Register the built-in plugin and re-install every stored plugin.

        Stored plugins are installed concurrently. A failing one is logged and
        reported in the returned list; it never stops the others.

        Returns:
            One InstallResult per stored record

        Raises:
            PluginError: If called more than once
            StoreError: If the stored records cannot be read
        """
        if self._initialized:
            raise PluginError("Plugin manager already initialized")
        self._initialized = True

        logger.info("Initializing plugin manager")
        core = PluginWrapper(module=self.core_module, record=core_record())
        async with self._reserve(core.name):
            await self._register(core)

        logger.debug("Finding stored plugins")
        descriptors = [PluginDescriptor.from_record(r) for r in await self.store.find_all()]

        logger.debug("Installing stored plugins", count=len(descriptors))
        settled = await asyncio.gather(
            *(self.add_plugin(d) for d in descriptors), return_exceptions=True
        )

        results = []
        for descriptor, result in zip(descriptors, settled):
            if isinstance(result, Exception):
                logger.error(
                    "Failed installing plugin", plugin=descriptor.name, error=str(result)
                )
                result = InstallResult(descriptor=descriptor, error=result)
            elif isinstance(result, BaseException):
                raise result
            results.append(result)

        failed = [r.descriptor.name for r in results if not r.ok]
        logger.info(
            "Plugin manager initialized",
            plugins=len(self._plugins),
            failed=failed,
        )
        return results

    async def add_plugin(
        self, descriptor: PluginDescriptor | Mapping[str, Any]
    ) -> InstallResult:
        """
        Install a plugin and register it.

        A descriptor without identity is a new plugin: once registered, its
        version is read from the installed package and a record is stored.
        Installation failures are logged and returned, never raised.

        Args:
            descriptor: PluginDescriptor, or its dict form

        Returns:
            InstallResult
        """
        if isinstance(descriptor, Mapping):
            descriptor = PluginDescriptor.from_dict(descriptor)

        logger.info("Installing plugin", plugin=descriptor.name)
        try:
            return await self._add(descriptor)
        except _INSTALL_FAILURES as e:
            logger.error("Failed installing plugin", plugin=descriptor.name, error=str(e))
            return InstallResult(descriptor=descriptor, error=e)

    async def _add(self, descriptor: PluginDescriptor) -> InstallResult:
        # Local plugins are only named once their manifest is read
        if not descriptor.local_install and self._name_taken(descriptor.name):
            raise PluginError(f"Plugin {descriptor.name} is already registered")

        location = await self._install(descriptor)
        name = location.manifest.name if location.manifest else descriptor.name
        is_new = descriptor.identity is None

        async with self._reserve(name):
            module = load_plugin_module(location)
            try:
                if is_new or not descriptor.version:
                    version = self._read_version(location, module)
                else:
                    version = descriptor.version

                wrapper = PluginWrapper(
                    module=module,
                    record=PluginRecord(
                        name=descriptor.name, version=version, identity=descriptor.identity
                    ),
                    manifest=location.manifest,
                )
                await self._register(wrapper)
            except _INSTALL_FAILURES:
                unload_plugin_module(location)
                raise

        self._locations[wrapper.name] = location
        logger.info("Installed plugin", plugin=wrapper.name, version=version)

        if is_new:
            try:
                wrapper.record = await self.store.create(wrapper.record)
            except Exception as e:
                await self._unregister(wrapper)
                if isinstance(e, StoreError):
                    raise
                raise StoreError(f"Failed to save record of {wrapper.name}: {e}") from e
            logger.debug("Saved plugin record", plugin=wrapper.name, identity=wrapper.identity)

        return InstallResult(descriptor=descriptor, record=wrapper.record)

    async def _install(self, descriptor: PluginDescriptor) -> PluginLocation:
        try:
            return await self.installer.install(descriptor)
        except InstallError:
            raise
        except Exception as e:
            raise InstallError(f"Installer failed for {descriptor.name}: {e}") from e

    def _read_version(self, location: PluginLocation, module: ModuleType) -> str:
        try:
            return self.installer.read_version(location, module)
        except InstallError:
            raise
        except Exception as e:
            raise InstallError(f"Failed to read version of {location.key}: {e}") from e

    def _name_taken(self, name: str) -> bool:
        return name in self._pending or self.get_plugin(name) is not None

    @asynccontextmanager
    async def _reserve(self, name: str):
        """Hold a plugin name while its module is loaded and set up."""
        async with self._lock:
            if self._name_taken(name):
                raise PluginError(f"Plugin {name} is already registered")
            self._pending[name] = None
        try:
            yield
        finally:
            self._pending.pop(name, None)

    def _check_cycle(self, wrapper: PluginWrapper) -> None:
        pending = [w for w in self._pending.values() if w is not None]
        try:
            topological_order([*self._plugins, *pending, wrapper])
        except DependencyCycleError as e:
            raise PluginError(
                f"Plugin {wrapper.name} would close a dependency cycle: {', '.join(e.names)}"
            ) from e

    async def _register(self, wrapper: PluginWrapper) -> None:
        """Set up a wrapper whose name is reserved, then make it visible."""
        async with self._lock:
            self._check_cycle(wrapper)
            self._pending[wrapper.name] = wrapper

        settings = getattr(wrapper.module, "settings", None)
        declared = isinstance(settings, Mapping) and bool(settings)
        if declared:
            config.declare(wrapper.name, settings, replace=True)

        try:
            await execute_hook(wrapper.module, HookType.SETUP, self.hook_timeout)
        except HookError:
            if declared:
                config.undeclare(wrapper.name)
            raise

        async with self._lock:
            self._plugins.append(wrapper)

    async def _unregister(self, wrapper: PluginWrapper) -> None:
        async with self._lock:
            if wrapper in self._plugins:
                self._plugins.remove(wrapper)

        try:
            await execute_hook(wrapper.module, HookType.TEARDOWN, self.hook_timeout)
        except HookError as e:
            logger.error("Plugin teardown failed", plugin=wrapper.name, error=str(e))

        location = self._locations.pop(wrapper.name, None)
        if location is not None:
            unload_plugin_module(location)
        config.undeclare(wrapper.name)

    async def remove_plugin(self, identity: str) -> PluginRecord:
        """
        Remove an installed plugin.

        Deletes the stored record, runs the plugin's teardown hook and drops
        its wrapper from the registry. The package itself stays installed.

        Returns:
            The deleted record

        Raises:
            RecordNotFoundError: If no record has this identity
        """
        record = await self.store.find_one(identity)
        if record is None:
            raise RecordNotFoundError(identity)

        await self.store.delete(identity)
        logger.info("Removed plugin record", plugin=record.name, identity=identity)

        wrapper = next((w for w in self._plugins if w.identity == identity), None)
        if wrapper is None:
            logger.debug("Removed plugin was not registered", plugin=record.name)
            return record

        await self._unregister(wrapper)
        logger.info("Removed plugin", plugin=wrapper.name)
        return record

    async def get_installed_plugins(self) -> list[PluginRecord]:
        """Stored plugin records (the built-in plugin has none)."""
        return await self.store.find_all()

    def get_plugins(
        self, capability: str | None = None, only_return_capability: bool = True
    ) -> list[Any]:
        """
        Registered plugins exposing a capability, in dependency order.

        Args:
            capability: Namespace name (e.g. "servers"); None for all plugins
            only_return_capability: Return the namespaces instead of wrappers

        Returns:
            Namespaces, or wrappers when only_return_capability is False or
            no capability is given
        """
        plugins = order(list(self._plugins), self.ordering)

        if capability is None:
            return plugins

        plugins = [w for w in plugins if w.capability(capability) is not None]

        if only_return_capability:
            return [w.capability(capability) for w in plugins]
        return plugins

    def get_fields(self, capability: str) -> list[Any]:
        """Editable field descriptors of a capability, across plugins."""
        fields: list[Any] = []
        for namespace in self.get_plugins(capability):
            fields.extend(namespace_get(namespace, "fields") or [])
        return fields

    def get_display(self, capability: str, items: Iterable[Any]) -> dict[str, list[Any]]:
        """
        Table of resources built from every plugin's display columns.

        A namespace's ``display`` lists entries with a column ``name`` and a
        ``value`` callable taking one resource. Columns keep the position where
        they first appear in plugin order; when two plugins contribute the same
        column, the later plugin's value wins.

        Args:
            capability: Namespace name (e.g. "servers")
            items: Resources of that type

        Returns:
            {"columns": [name, ...], "rows": [{name: value, ...}, ...]}
        """
        columns: list[str] = []
        entries = []
        for namespace in self.get_plugins(capability):
            for entry in namespace_get(namespace, "display") or []:
                name = namespace_get(entry, "name")
                if name not in columns:
                    columns.append(name)
                entries.append((name, namespace_get(entry, "value")))

        rows = [{name: value(item) for name, value in entries} for item in items]
        return {"columns": columns, "rows": rows}

    async def run(
        self, capability: str, operation: str, argument: Any = None
    ) -> BatchResult:
        """
        Run an operation across every plugin that implements it.

        Plugins run concurrently; each starts after the plugins it depends on
        have finished. Failures are isolated per plugin and reported in the
        result, never raised.
        """
        wrappers = self.get_plugins(capability, only_return_capability=False)
        logger.debug(
            "Running plugin operation",
            capability=capability,
            operation=operation,
            plugins=[w.name for w in wrappers],
        )
        return await run_batch(
            wrappers, capability, operation, argument, self.operation_timeout
        )

    async def shutdown(self) -> None:
        """Tear down every registered plugin, dependents first."""
        for wrapper in reversed(order(list(self._plugins), self.ordering)):
            await self._unregister(wrapper)
        self._initialized = False
        logger.info("Plugin manager shut down")
