"""Find installed Shipyard plugins through the "shipyard.plugins" entry point group."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Optional

from shipyard_core.plugin import ToolPlugin

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "shipyard.plugins"


def _load(ep: importlib.metadata.EntryPoint) -> Optional[ToolPlugin]:
    """Call the entry point's factory; None if it does not yield a ToolPlugin."""
    plugin = ep.load()()
    if isinstance(plugin, ToolPlugin):
        return plugin
    logger.warning(
        "Entry point '%s' returned %s, not a ToolPlugin; skipping",
        ep.name,
        type(plugin).__name__,
    )
    return None


def discover_plugins() -> dict[str, ToolPlugin]:
    """Load every plugin registered under ENTRY_POINT_GROUP.

    Packages register a zero-argument factory:

        [project.entry-points."shipyard.plugins"]
        pipeline = "shipyard_pipeline:create_plugin"

    A plugin that fails to import is logged and left out so one broken
    install cannot take the whole CLI down. When two entry points claim
    the same plugin name the first one wins.

    Returns:
        Plugin name -> plugin instance.
    """
    plugins: dict[str, ToolPlugin] = {}

    for ep in importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP):
        try:
            plugin = _load(ep)
        except Exception:
            logger.exception("Failed to load plugin from entry point '%s'", ep.name)
            continue
        if plugin is None:
            continue

        if plugin.name in plugins:
            logger.warning(
                "Plugin name '%s' from entry point '%s' is already taken; skipping",
                plugin.name,
                ep.name,
            )
            continue

        plugins[plugin.name] = plugin
        logger.debug("Loaded plugin %s v%s", plugin.name, plugin.version)

    return plugins
