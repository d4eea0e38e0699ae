"""
Sawmon Plugin System - plugin lifecycle and orchestration.

This package handles:
- Plugin descriptors, records and manifests
- pip/local installation and dynamic loading
- Durable plugin records
- Dependency ordering
- Concurrent, failure-isolated operation batches
"""

from sawmon.plugin.invoker import BatchResult, OperationOutcome, OutcomeStatus
from sawmon.plugin.manager import InstallResult, PluginError, PluginManager
from sawmon.plugin.manifest import PluginDescriptor, PluginRecord
from sawmon.plugin.wrapper import PluginWrapper

__all__ = [
    "BatchResult",
    "InstallResult",
    "OperationOutcome",
    "OutcomeStatus",
    "PluginDescriptor",
    "PluginError",
    "PluginManager",
    "PluginRecord",
    "PluginWrapper",
]
