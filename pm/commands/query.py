"""
pm query commands (-Q, --init-config).
"""

import asyncio
from typing import Any

from sawmon import config
from sawmon.app import create_manager


def query_command(args: Any) -> int:
    """List installed plugin records, one per line."""
    return asyncio.run(query_async(args))


async def query_async(args: Any) -> int:
    manager = create_manager(args.config)
    records = await manager.get_installed_plugins()

    for record in sorted(records, key=lambda r: r.name):
        if args.verbose:
            print(f"{record.name} {record.version} {record.identity}")
        else:
            print(f"{record.name} {record.version}")

    return 0


def init_config_command(args: Any) -> int:
    """Print a config file with the engine and built-in plugin defaults."""
    from sawmon.plugins import core

    create_manager(args.config)
    config.declare("core", core.settings, replace=True)
    print(config.render_defaults(), end="")
    return 0
