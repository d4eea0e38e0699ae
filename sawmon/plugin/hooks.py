"""
Plugin Lifecycle Hooks.

This module runs the optional lifecycle callables a plugin module may define.

Key features:
- Hook discovery by module attribute (``setup``, ``teardown``)
- Sync and async hooks
- Timeout per hook
"""

import asyncio
from enum import Enum
from types import ModuleType

from sawmon.utils import call


class HookError(Exception):
    """Raised when a lifecycle hook fails or times out."""

    pass


class HookType(Enum):
    """Hook type enumeration; the value is the module attribute name."""

    SETUP = "setup"
    TEARDOWN = "teardown"


def has_hook(module: ModuleType, hook_type: HookType) -> bool:
    return callable(getattr(module, hook_type.value, None))


async def execute_hook(
    module: ModuleType,
    hook_type: HookType,
    timeout: float | None = 60.0,
) -> None:
    """
    Execute a lifecycle hook of a plugin module.

    A module without the hook is skipped silently.

    Args:
        module: Loaded plugin module
        hook_type: Type of hook to execute
        timeout: Seconds the hook may take (None: no limit)

    Raises:
        HookError: If hook execution fails
    """
    if not has_hook(module, hook_type):
        return

    hook = getattr(module, hook_type.value)
    deadline = asyncio.timeout(timeout)
    try:
        async with deadline:
            await call(hook)
    except TimeoutError as e:
        if not deadline.expired():
            raise HookError(f"Hook {hook_type.value} failed: {e}") from e
        raise HookError(
            f"Hook {hook_type.value} timed out after {timeout} seconds"
        ) from e
    except Exception as e:
        raise HookError(f"Hook {hook_type.value} failed: {e}") from e
