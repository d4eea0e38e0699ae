"""
Utils Module - helpers shared by the plugin engine.

This module provides:
- call(): invoke a plugin callable that may be sync or async
- is_namespace() / namespace_get(): uniform access to capability namespaces,
  which plugins write either as dicts or as types.SimpleNamespace objects
"""

import inspect
from collections.abc import Callable, Mapping
from types import SimpleNamespace
from typing import Any


async def call(func: Callable[..., Any], *args: Any) -> Any:
    """
    Call func and await its result when it is awaitable.

    Plain functions run inline on the event loop; they should not block.
    """
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def is_namespace(value: Any) -> bool:
    """True for the structured values that count as a capability namespace."""
    return isinstance(value, (Mapping, SimpleNamespace))


def namespace_get(namespace: Any, key: str, default: Any = None) -> Any:
    """Look up key in a dict-style or attribute-style namespace."""
    if isinstance(namespace, Mapping):
        return namespace.get(key, default)
    return getattr(namespace, key, default)
