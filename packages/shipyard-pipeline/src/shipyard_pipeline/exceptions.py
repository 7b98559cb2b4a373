"""Exception hierarchy for the pipeline.

Vulnerability findings over the threshold are not an exception; the
aggregator reports them as an Outcome.
"""

from __future__ import annotations


class ShipyardError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(ShipyardError):
    """Invalid reference, catalog, selection or policy. Raised before any side effect."""


class BuildError(ShipyardError):
    """One or more image builds failed or timed out."""

    def __init__(self, message: str, failed_targets: list[str]):
        super().__init__(message)
        self.failed_targets = failed_targets


class ScanInfrastructureError(ShipyardError):
    """The scanner could not run (missing binary, network, daemon, timeout).

    Distinct from the scanner reporting vulnerabilities.
    """

    def __init__(self, message: str, target: str | None = None):
        super().__init__(message)
        self.target = target


class PushError(ShipyardError):
    """Registry login or image push failed after all retries."""

    def __init__(self, message: str, image: str | None = None):
        super().__init__(message)
        self.image = image
