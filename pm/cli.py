"""
pm CLI - sawmon plugin manager.

Pacman-style interface for managing sawmon plugins.

Usage:
    pm -S <plugin>[@version]          Install plugin (./path for local plugins)
    pm -R <identity>                  Remove plugin
    pm -Q                             List installed plugins
    pm -X <capability> <operation>    Run an operation across plugins
    pm --init-config                  Print a config file with all defaults
"""

import argparse
import importlib
import sys
import traceback

from sawmon.log import configure_logging


class PMError(Exception):
    """A command was used wrongly; printed without a traceback."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="sawmon plugin manager",
        add_help=False,
    )

    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-X", "--execute", action="store_true", help="Run an operation")
    ops.add_argument(
        "--init-config", action="store_true", help="Print default configuration"
    )
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    parser.add_argument(
        "-c", "--config", default=None, help="Config file (default: config/sawmon.toml)"
    )
    parser.add_argument(
        "--arg", default=None, help="JSON argument passed to the operation (-X)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    parser.add_argument("targets", nargs="*", help="Plugin names, identities or operation")

    return parser


def print_help():
    help_text = """
pm - sawmon plugin manager

Usage:
    pm -S <plugin>[@version]          Install plugin (./path for local plugins)
    pm -R <identity>                  Remove plugin
    pm -Q                             List installed plugins
    pm -X <capability> <operation>    Run an operation across plugins
    pm --init-config                  Print a config file with all defaults

Options:
    -c, --config <file>               Config file (default: config/sawmon.toml)
    --arg <json>                      Argument passed to the operation (-X)
    -v, --verbose                     Verbose output
    -h, --help                        Show this help
"""
    print(help_text.strip())


# Operation flag -> (module, command function); commands are imported lazily
_COMMANDS = {
    "sync": ("pm.commands.install", "install_command"),
    "remove": ("pm.commands.remove", "remove_command"),
    "query": ("pm.commands.query", "query_command"),
    "execute": ("pm.commands.run", "run_command"),
    "init_config": ("pm.commands.query", "init_config_command"),
}


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the selected command. Returns the exit code."""
    args = create_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING")

    selected = next((flag for flag in _COMMANDS if getattr(args, flag)), None)
    if selected is None:
        print_help()
        return 0

    module_name, function_name = _COMMANDS[selected]
    try:
        command = getattr(importlib.import_module(module_name), function_name)
        return command(args)
    except PMError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"pm: {type(e).__name__}: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
