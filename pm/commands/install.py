"""
pm install command (-S).

Install plugins from the package index or a local directory.
"""

import asyncio
import sys
from typing import Any

from pm.cli import PMError
from sawmon.app import create_manager
from sawmon.plugin.manifest import LOCAL_MARKER, PluginDescriptor


def install_command(args: Any) -> int:
    """
    Execute install command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        raise PMError("No targets specified. Usage: pm -S <plugin>[@version]")

    return asyncio.run(install_async(args))


async def install_async(args: Any) -> int:
    manager = create_manager(args.config)
    descriptors = [parse_target(target) for target in args.targets]

    # Load what is installed already so name collisions are caught
    await manager.initialize()
    try:
        results = await asyncio.gather(*(manager.add_plugin(d) for d in descriptors))
    finally:
        await manager.shutdown()

    fail_count = 0
    for result in results:
        if result.ok:
            record = result.record
            print(f"installed {record.name} {record.version} ({record.identity})")
        else:
            print(f"Failed to install {result.descriptor.name}: {result.error}", file=sys.stderr)
            fail_count += 1

    if args.verbose:
        print(f"\nInstalled: {len(results) - fail_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


def parse_target(target: str) -> PluginDescriptor:
    """
    Parse plugin target.

    "name" or "name@version"; local paths ("./plugins/x") are never split.
    """
    if "@" in target and not target.startswith(LOCAL_MARKER):
        name, version = target.split("@", 1)
        return PluginDescriptor(name=name, version=version or None)
    return PluginDescriptor(name=target)
