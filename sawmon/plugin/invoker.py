"""
Orchestrated Invoker.

This module runs one operation across every plugin that implements it.

Key features:
- One asyncio task per plugin, started at once
- A plugin's operation starts only after its dependencies' operations settle
- Failure isolation: a failed plugin skips its dependents, never its siblings
- Per-operation deadline
- Structured per-plugin outcomes instead of a bare "done"
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from sawmon.plugin.wrapper import PluginWrapper
from sawmon.utils import call, namespace_get

logger = structlog.get_logger(__name__)


class OperationTimeoutError(Exception):
    """Raised in place of a plugin operation that missed its deadline."""

    def __init__(self, plugin: str, operation: str, timeout: float):
        super().__init__(
            f"Plugin {plugin} did not finish {operation} within {timeout} seconds"
        )
        self.plugin = plugin
        self.operation = operation
        self.timeout = timeout


class DependencyFailedError(Exception):
    """Recorded for a plugin whose dependency failed, so it was not run."""

    def __init__(self, plugin: str, dependency: str, cause: BaseException | None):
        super().__init__(
            f"Plugin {plugin} skipped: dependency {dependency} failed ({cause})"
        )
        self.plugin = plugin
        self.dependency = dependency
        self.cause = cause


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class OperationOutcome:
    """
    Result of one plugin's part in a batch.

    Attributes:
        plugin: Plugin name
        status: Whether the operation succeeded, failed or never ran
        result: Return value of the operation, if it succeeded
        error: The failure, or DependencyFailedError for a skipped plugin
    """

    plugin: str
    status: OutcomeStatus
    result: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass
class BatchResult:
    """Outcomes of one operation run across plugins, keyed by plugin name."""

    capability: str
    operation: str
    outcomes: dict[str, OperationOutcome] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes.values())

    @property
    def failures(self) -> dict[str, OperationOutcome]:
        return {name: o for name, o in self.outcomes.items() if not o.ok}

    @property
    def invoked(self) -> list[str]:
        """Plugins whose operation was actually called."""
        return [
            name
            for name, o in self.outcomes.items()
            if o.status is not OutcomeStatus.SKIPPED
        ]

    def __len__(self) -> int:
        return len(self.outcomes)


def _settled(name: str, task: asyncio.Task) -> OperationOutcome:
    # A task only ends cancelled when the batch itself was cancelled
    if task.cancelled():
        return OperationOutcome(
            plugin=name, status=OutcomeStatus.FAILED, error=asyncio.CancelledError()
        )
    return task.result()


async def _invoke(
    wrapper: PluginWrapper,
    operation: str,
    func: Any,
    argument: Any,
    dependencies: list[tuple[str, asyncio.Task]],
    timeout: float | None,
) -> OperationOutcome:
    name = wrapper.name

    if dependencies:
        await asyncio.wait([task for _, task in dependencies])

        for dep_name, task in dependencies:
            dep_outcome = _settled(dep_name, task)
            if dep_outcome.ok:
                continue
            cause = dep_outcome.error
            if isinstance(cause, DependencyFailedError):
                cause = cause.cause
            logger.debug("Skipping plugin operation", plugin=name, dependency=dep_name)
            return OperationOutcome(
                plugin=name,
                status=OutcomeStatus.SKIPPED,
                error=DependencyFailedError(name, dep_name, cause),
            )

    deadline = asyncio.timeout(timeout)
    try:
        async with deadline:
            result = await call(func, argument)
    except TimeoutError as e:
        # The plugin's own TimeoutError is an ordinary failure
        error = OperationTimeoutError(name, operation, timeout) if deadline.expired() else e
        logger.debug(
            "Plugin operation timed out", plugin=name, operation=operation, error=str(error)
        )
        return OperationOutcome(plugin=name, status=OutcomeStatus.FAILED, error=error)
    except asyncio.CancelledError as e:
        if asyncio.current_task().cancelling():
            raise
        logger.debug("Plugin operation cancelled itself", plugin=name, operation=operation)
        return OperationOutcome(plugin=name, status=OutcomeStatus.FAILED, error=e)
    except Exception as e:
        logger.debug(
            "Plugin operation failed", plugin=name, operation=operation, error=str(e)
        )
        return OperationOutcome(plugin=name, status=OutcomeStatus.FAILED, error=e)

    return OperationOutcome(plugin=name, status=OutcomeStatus.SUCCEEDED, result=result)


async def run_batch(
    wrappers: Sequence[PluginWrapper],
    capability: str,
    operation: str,
    argument: Any = None,
    timeout: float | None = None,
) -> BatchResult:
    """
    Run capability.operation(argument) on every wrapper that defines it.

    Wrappers are expected in dependency order. Each plugin waits for the
    plugins it lists in ``dependencies`` that come before it and define the
    same operation; others are treated as satisfied.

    Args:
        wrappers: Ordered wrappers exposing the capability
        capability: Capability namespace name (e.g. "servers")
        operation: Operation name within the namespace (e.g. "ping")
        argument: Passed to every operation
        timeout: Seconds each operation may take (None: no limit)

    Returns:
        BatchResult with one outcome per plugin that defines the operation
    """
    batch = BatchResult(capability=capability, operation=operation)
    tasks: dict[str, asyncio.Task] = {}

    for wrapper in wrappers:
        func = namespace_get(wrapper.capability(capability), operation)
        if not callable(func):
            continue

        dependencies = [
            (dep_name, tasks[dep_name])
            for dep_name in wrapper.dependencies
            if dep_name in tasks
        ]
        tasks[wrapper.name] = asyncio.create_task(
            _invoke(wrapper, operation, func, argument, dependencies, timeout),
            name=f"{capability}.{operation}:{wrapper.name}",
        )

    if not tasks:
        return batch

    try:
        await asyncio.wait(tasks.values())
    except asyncio.CancelledError:
        for task in tasks.values():
            task.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise

    for name, task in tasks.items():
        batch.outcomes[name] = _settled(name, task)

    if not batch.ok:
        logger.warning(
            "A plugin didn't catch all problems. Please report this to the plugin author.",
            capability=capability,
            operation=operation,
            failed=sorted(batch.failures),
        )

    return batch
