"""Shipyard CLI entry point.

Usage:
    shipyard                        Show help and list available tools
    shipyard <tool> [args]          Run a tool
    shipyard <tool> --help          Show tool-specific help
    shipyard version                Show Shipyard, plugin and external tool versions
    shipyard --version              Show version (short)
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Optional

from shipyard_cli import __version__
from shipyard_core.deps import check_dependencies
from shipyard_core.plugin import ToolPlugin
from shipyard_core.registry import discover_plugins

# External tools reported by `shipyard version`
REPORTED_TOOLS = ["docker", "trivy"]


class UsageError(Exception):
    """Bad tool invocation; the message is printed before exiting with 1."""


def show_help(plugins: dict) -> None:
    """Print help with available tools."""
    print(f"Shipyard v{__version__}: container build, scan and publish pipeline\n")
    print("Usage: shipyard <tool> [options]\n")
    print("Available tools:")
    for name, plugin in sorted(plugins.items()):
        print(f"  {name:<20} {plugin.description}")
    print()
    print("Built-in commands:")
    print(f"  {'version':<20} Show Shipyard, plugin and external tool versions")
    print()
    print("Global options:")
    print("  --version, -V        Show version (short)")
    print("  --help, -h           Show this help")
    print()
    print("Use 'shipyard <tool> --help' for tool-specific options.")


def show_version(plugins: dict) -> None:
    print(f"Shipyard v{__version__}")
    for name, plugin in sorted(plugins.items()):
        print(f"  {name:<20} {plugin.version}")
    print()
    print("External tools:")
    for check in check_dependencies(REPORTED_TOOLS):
        print(f"  {check.describe()}")


def parse_tool_args(plugin: ToolPlugin, argv: list[str]) -> dict[str, Any]:
    """Parse argv (everything after the tool name) into the plugin's args dict.

    Plugins with a "command" param take it as the first positional word,
    e.g. `shipyard pipeline run --ref v1.2.0`.

    Raises:
        UsageError: The subcommand is missing or not one the plugin accepts.
    """
    from shipyard_cli.runner import add_params_to_parser, detect_subcommand

    params = plugin.get_params()
    subcommand_param = detect_subcommand(params)
    prog = f"shipyard {plugin.name}"
    fixed: dict[str, Any] = {}

    if subcommand_param is not None:
        choices = ", ".join(subcommand_param.choices)
        if not argv or argv[0].startswith("-"):
            raise UsageError(
                f"Error: {plugin.name} requires a subcommand\n"
                f"Available commands: {choices}\n"
                f"\nUsage: {prog} <command> [options]"
            )
        subcommand, argv = argv[0], argv[1:]
        if subcommand not in subcommand_param.choices:
            raise UsageError(
                f"Unknown {plugin.name} command: {subcommand}\nAvailable commands: {choices}"
            )
        prog = f"{prog} {subcommand}"
        fixed[subcommand_param.dest] = subcommand
        params = [p for p in params if p is not subcommand_param]

    parser = argparse.ArgumentParser(prog=prog, description=plugin.description)
    add_params_to_parser(parser, params)
    return {**vars(parser.parse_args(argv)), **fixed}


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    plugins = discover_plugins()

    if not argv or argv[0] in ("-h", "--help"):
        show_help(plugins)
        sys.exit(0)

    command, rest = argv[0], argv[1:]

    if command in ("-V", "--version"):
        print(f"shipyard {__version__}")
        sys.exit(0)

    if command == "version":
        show_version(plugins)
        sys.exit(0)

    plugin = plugins.get(command)
    if plugin is None:
        print(f"Unknown tool: {command}")
        print()
        show_help(plugins)
        sys.exit(1)

    try:
        args = parse_tool_args(plugin, rest)
    except UsageError as e:
        print(e)
        sys.exit(1)

    from shipyard_cli.runner import run_plugin

    sys.exit(run_plugin(plugin, args))


if __name__ == "__main__":
    main()
