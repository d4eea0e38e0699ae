"""
pm remove command (-R).

Remove plugins by record identity.
"""

import asyncio
import sys
from typing import Any

from pm.cli import PMError
from sawmon.app import create_manager
from sawmon.plugin.store import RecordNotFoundError


def remove_command(args: Any) -> int:
    if not args.targets:
        raise PMError("No targets specified. Usage: pm -R <identity>")

    return asyncio.run(remove_async(args))


async def remove_async(args: Any) -> int:
    manager = create_manager(args.config)

    # Plugins must be loaded for their teardown hooks to run
    await manager.initialize()
    fail_count = 0
    try:
        for identity in args.targets:
            try:
                record = await manager.remove_plugin(identity)
            except RecordNotFoundError as e:
                print(f"Error: {e}", file=sys.stderr)
                fail_count += 1
                continue
            print(f"removed {record.name} {record.version}")
    finally:
        await manager.shutdown()

    return 0 if fail_count == 0 else 1
