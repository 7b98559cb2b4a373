"""Shipyard Core: plugin protocol and shared utilities."""

from shipyard_core.auth import RegistryCredentials
from shipyard_core.context import ExecutionContext, RunCancelled
from shipyard_core.plugin import ResultStatus, ToolParam, ToolPlugin, ToolResult

__all__ = [
    "ExecutionContext",
    "RegistryCredentials",
    "RunCancelled",
    "ResultStatus",
    "ToolParam",
    "ToolPlugin",
    "ToolResult",
]
