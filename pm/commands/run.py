"""
pm run command (-X).

Load every installed plugin and run one operation across them.
"""

import asyncio
import json
from typing import Any

from pm.cli import PMError
from sawmon.app import create_manager


def run_command(args: Any) -> int:
    if len(args.targets) != 2:
        raise PMError("Usage: pm -X <capability> <operation> [--arg JSON]")

    try:
        argument = json.loads(args.arg) if args.arg is not None else None
    except json.JSONDecodeError as e:
        raise PMError(f"--arg is not valid JSON: {e}") from e

    return asyncio.run(run_async(args, argument))


async def run_async(args: Any, argument: Any) -> int:
    capability, operation = args.targets
    manager = create_manager(args.config)

    await manager.initialize()
    try:
        batch = await manager.run(capability, operation, argument)
    finally:
        await manager.shutdown()

    if not batch.outcomes:
        print(f"No plugin implements {capability}.{operation}")
        return 0

    for name, outcome in batch.outcomes.items():
        line = f"{name}: {outcome.status.value}"
        if outcome.error is not None:
            line += f" ({outcome.error})"
        elif args.verbose:
            line += f" -> {outcome.result!r}"
        print(line)

    return 0 if batch.ok else 1
