"""
Sawmon - plugin-driven server and website monitoring backend.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from sawmon.app import create_manager
from sawmon.plugin import (
    BatchResult,
    InstallResult,
    PluginDescriptor,
    PluginManager,
    PluginRecord,
)

__all__ = [
    "__version__",
    "BatchResult",
    "InstallResult",
    "PluginDescriptor",
    "PluginManager",
    "PluginRecord",
    "create_manager",
]
