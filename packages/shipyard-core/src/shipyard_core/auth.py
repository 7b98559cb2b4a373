"""Registry credential helpers.

Credentials are supplied by the surrounding CI environment; Shipyard only
reads them and hands them to the container runtime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

USERNAME_ENV = "SHIPYARD_REGISTRY_USER"
PASSWORD_ENV = "SHIPYARD_REGISTRY_PASSWORD"


@dataclass(frozen=True)
class RegistryCredentials:
    """Username/password pair for a container registry."""

    username: str
    password: str = field(repr=False)


def load_registry_credentials(
    env: Optional[Mapping[str, str]] = None,
) -> RegistryCredentials:
    """Read registry credentials from the environment.

    Args:
        env: Mapping to read from. Defaults to os.environ.

    Returns:
        RegistryCredentials.

    Raises:
        RuntimeError: If either variable is unset or empty.
    """
    env = os.environ if env is None else env
    username = env.get(USERNAME_ENV, "").strip()
    password = env.get(PASSWORD_ENV, "")

    missing = [
        name
        for name, value in ((USERNAME_ENV, username), (PASSWORD_ENV, password))
        if not value
    ]
    if missing:
        raise RuntimeError(
            f"Registry credentials not configured. Set {', '.join(missing)}."
        )

    return RegistryCredentials(username=username, password=password)
