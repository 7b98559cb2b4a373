"""Per-run state handed to a plugin: credentials, user config, progress and cancellation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from shipyard_core.auth import RegistryCredentials

ProgressCallback = Callable[[float, str], None]


class RunCancelled(Exception):
    """Cancellation was requested while a run was between stages."""


def _ignore_progress(fraction: float, message: str) -> None:
    pass


@dataclass
class ExecutionContext:
    """Everything a plugin run gets from its caller.

    Attributes:
        credentials: Registry login, filled in by the runner for plugins that
                     set requires_auth; None otherwise.
        config: Parsed user config file (~/.config/shipyard/config.yaml).
        on_progress: Receives (fraction 0.0-1.0, message) status lines.
        cancel_event: Set by the caller to ask the run to stop at the next
                      stage boundary.
    """

    credentials: Optional[RegistryCredentials] = None
    config: dict = field(default_factory=dict)
    on_progress: ProgressCallback = _ignore_progress
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def progress(self, fraction: float, message: str) -> None:
        self.on_progress(fraction, message)

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Stop before `stage` if cancellation was requested.

        Raises:
            RunCancelled
        """
        if self.cancel_event.is_set():
            raise RunCancelled(f"Cancelled before {stage}")
