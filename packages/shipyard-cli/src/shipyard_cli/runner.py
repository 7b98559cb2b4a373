"""Turn a plugin's declared params into argparse, run it, and map the result to an exit code."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

from shipyard_core.auth import load_registry_credentials
from shipyard_core.context import ExecutionContext
from shipyard_core.plugin import ResultStatus, ToolParam, ToolPlugin, ToolResult

logger = logging.getLogger(__name__)

ARG_TYPES: dict[str, type] = {
    "str": str,
    "int": int,
    "float": float,
    "path": Path,
}

CONFIG_PATH = Path.home() / ".config" / "shipyard" / "config.yaml"

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def detect_subcommand(params: list[ToolParam]) -> Optional[ToolParam]:
    """The positional "command" param, if the plugin declares one."""
    return next((param for param in params if param.is_subcommand), None)


def add_params_to_parser(parser: argparse.ArgumentParser, params: list[ToolParam]) -> None:
    """Register each ToolParam as a --flag on parser.

    Bool params get a --flag/--no-flag pair defaulting to False unless the
    param says otherwise.
    """
    for param in params:
        if param.type == "bool":
            parser.add_argument(
                param.flag,
                dest=param.dest,
                help=param.description,
                action=argparse.BooleanOptionalAction,
                default=bool(param.default),
            )
            continue

        options: dict[str, Any] = {
            "dest": param.dest,
            "help": param.description,
            "type": ARG_TYPES.get(param.type, str),
            "required": param.required,
        }
        if param.default is not None:
            options["default"] = param.default
        if param.choices:
            options["choices"] = param.choices
        parser.add_argument(param.flag, **options)


def configure_logging(verbose: bool = False) -> None:
    """Log to stderr at INFO, or DEBUG with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _console_progress(fraction: float, message: str) -> None:
    print(f"  [{int(fraction * 100):3d}%] {message}", file=sys.stderr, flush=True)


def load_config(path: Path = CONFIG_PATH) -> dict:
    """Read the user config file. Missing or malformed files yield {}."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level must be a mapping", path)
        return {}
    return data


def print_result(result: ToolResult) -> None:
    """Print the summary (or data["output"] when a plugin supplies one) and artifacts."""
    print()
    print(result.data.get("output") or result.summary)

    if result.artifacts:
        print("\nArtifacts:")
        width = max(len(name) for name in result.artifacts)
        for name, path in result.artifacts.items():
            print(f"  {name + ':':<{width + 1}} {path}")


def run_plugin(plugin: ToolPlugin, args: dict[str, Any]) -> int:
    """Run a plugin in-process.

    Returns:
        The exit code for the result status: 0 SUCCESS, 1 FAILURE,
        2 PARTIAL (UNSTABLE), 130 CANCELLED.
    """
    configure_logging(bool(args.get("verbose")))

    credentials = None
    if plugin.requires_auth:
        try:
            credentials = load_registry_credentials()
        except RuntimeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return ResultStatus.FAILURE.exit_code

    ctx = ExecutionContext(
        credentials=credentials,
        config=load_config(),
        on_progress=_console_progress,
        cancel_event=threading.Event(),
    )

    try:
        result = plugin.run(args, ctx)
    except KeyboardInterrupt:
        ctx.cancel_event.set()
        print("\nCancelled.", file=sys.stderr)
        return ResultStatus.CANCELLED.exit_code
    except Exception as e:
        logger.debug("Plugin %s raised", plugin.name, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return ResultStatus.FAILURE.exit_code

    print_result(result)
    logger.debug("%s finished: %s", plugin.name, result.status.label)
    return result.status.exit_code
