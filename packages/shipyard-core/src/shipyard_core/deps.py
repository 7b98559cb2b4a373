"""Check that the external CLIs a plugin shells out to are on PATH."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

# Where to send users when a tool is missing
INSTALL_HINTS: dict[str, str] = {
    "docker": "https://docs.docker.com/engine/install/",
    "podman": "https://podman.io/docs/installation",
    "trivy": "https://trivy.dev/latest/getting-started/installation/",
}


@dataclass(frozen=True)
class DependencyCheck:
    """Result of looking up one required executable."""

    name: str
    available: bool
    path: str | None

    def describe(self) -> str:
        """One line suitable for `shipyard version` output."""
        if self.available:
            return f"{self.name}: {self.path}"
        hint = INSTALL_HINTS.get(self.name)
        return f"{self.name}: NOT FOUND" + (f" (install: {hint})" if hint else "")


def check_dependencies(required: list[str]) -> list[DependencyCheck]:
    """Look up each tool with shutil.which.

    Args:
        required: Executable names, e.g. ["docker", "trivy"].
    """
    return [
        DependencyCheck(name=tool, available=path is not None, path=path)
        for tool, path in ((tool, shutil.which(tool)) for tool in required)
    ]


def assert_dependencies(required: list[str]) -> None:
    """Raise if any required tool is missing.

    Raises:
        RuntimeError: Naming every missing tool, with install links where known.
    """
    missing = [c for c in check_dependencies(required) if not c.available]
    if missing:
        details = "; ".join(c.describe() for c in missing)
        raise RuntimeError(
            f"Missing required tools: {', '.join(c.name for c in missing)} ({details})"
        )
