"""
Map a user-supplied target selection onto the build catalog.
"""

import logging

from shipyard_pipeline.constants import WILDCARD_TOKENS
from shipyard_pipeline.exceptions import ConfigurationError
from shipyard_pipeline.models import BuildTarget

logger = logging.getLogger(__name__)


def parse_selection(selection: str) -> list[str]:
    """Split a comma-separated selection into stripped, non-empty tokens."""
    return [token.strip() for token in (selection or "").split(",") if token.strip()]


def resolve_targets(
    selection: str,
    catalog: dict[str, BuildTarget],
    strict: bool = False,
) -> dict[str, BuildTarget]:
    """
    Resolve a selection string against the catalog.

    A wildcard token ("all" or "*") anywhere in the selection returns the
    full catalog. Otherwise unknown tokens are dropped with a warning, or
    rejected in strict mode. The result keeps catalog order and has no
    duplicates.

    Args:
        selection: Comma-separated target names, e.g. "web,nginx"
        catalog: Mapping of target name to BuildTarget
        strict: Fail on unknown tokens instead of dropping them

    Returns:
        Ordered mapping of selected names to catalog entries

    Raises:
        ConfigurationError: If strict and a token is unknown, or if nothing
            is left to build
    """
    tokens = parse_selection(selection)

    if any(token in WILDCARD_TOKENS for token in tokens):
        logger.debug("Wildcard selection, using full catalog")
        resolved = dict(catalog)
    else:
        unknown = [token for token in tokens if token not in catalog]
        if unknown:
            if strict:
                raise ConfigurationError(
                    f"Unknown target(s): {', '.join(unknown)}. "
                    f"Available: {', '.join(catalog)}"
                )
            for token in unknown:
                logger.warning(f"Ignoring unknown target '{token}' (available: {', '.join(catalog)})")

        requested = set(tokens)
        resolved = {name: target for name, target in catalog.items() if name in requested}

    if not resolved:
        raise ConfigurationError(
            f"No buildable targets in selection '{selection}'. "
            f"Available: {', '.join(catalog)}"
        )

    logger.info(f"Resolved targets: {', '.join(resolved)}")
    return resolved
