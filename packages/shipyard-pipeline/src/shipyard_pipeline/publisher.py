"""
Publisher: log in to the registry once, push each image with a bounded
sequential retry, and always log out.
"""

import logging
import subprocess
import time
from typing import Optional

from shipyard_core.auth import RegistryCredentials

from shipyard_pipeline.constants import (
    DEFAULT_RUNTIME,
    PUSH_RETRIES,
    PUSH_RETRY_DELAY,
    PUSH_TIMEOUT,
    REGISTRY_TIMEOUT,
)
from shipyard_pipeline.error_patterns import classify_error_type, is_retryable_push_error
from shipyard_pipeline.exceptions import PushError

logger = logging.getLogger(__name__)


class Publisher:
    """Pushes built images to a registry via the container runtime CLI."""

    def __init__(
        self,
        credentials: RegistryCredentials,
        registry: Optional[str] = None,
        runtime: str = DEFAULT_RUNTIME,
        retries: int = PUSH_RETRIES,
        retry_delay: float = PUSH_RETRY_DELAY,
    ):
        """
        Args:
            credentials: Username/password supplied by the environment
            registry: Registry host; None means the runtime's default (Docker Hub)
            runtime: docker or podman
            retries: Extra attempts per image after a failed push
            retry_delay: Seconds between attempts
        """
        self.credentials = credentials
        self.registry = registry
        self.runtime = runtime
        self.retries = retries
        self.retry_delay = retry_delay

    def _registry_args(self) -> list[str]:
        return [self.registry] if self.registry else []

    def login(self) -> None:
        """
        Authenticate once. The password goes to stdin, never argv.

        Raises:
            PushError: If login fails
        """
        cmd = [
            self.runtime,
            "login",
            *self._registry_args(),
            "-u",
            self.credentials.username,
            "--password-stdin",
        ]
        target = self.registry or "default registry"
        try:
            result = subprocess.run(
                cmd,
                input=self.credentials.password,
                capture_output=True,
                text=True,
                timeout=REGISTRY_TIMEOUT,
            )
        except subprocess.TimeoutExpired as e:
            raise PushError(f"Login to {target} timed out") from e
        except FileNotFoundError as e:
            raise PushError(f"Container runtime '{self.runtime}' not found in PATH") from e

        if result.returncode != 0:
            raise PushError(f"Login to {target} failed: {(result.stderr or '').strip()}")
        logger.info(f"✓ Logged in to {target}")

    def logout(self) -> None:
        """Log out. Failures are logged and never raised."""
        cmd = [self.runtime, "logout", *self._registry_args()]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=REGISTRY_TIMEOUT)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"Registry logout failed: {e}")
            return
        if result.returncode != 0:
            logger.warning(f"Registry logout failed: {(result.stderr or '').strip()}")
        else:
            logger.debug("Logged out of registry")

    def _attempt_push(self, image: str) -> tuple[bool, str]:
        """Attempt a single push. Returns (success, stderr)."""
        try:
            result = subprocess.run(
                [self.runtime, "push", image],
                capture_output=True,
                text=True,
                timeout=PUSH_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            return False, "timeout"
        return result.returncode == 0, result.stderr or ""

    def push(self, image: str) -> None:
        """
        Push one image, retrying up to `retries` more times.

        Authentication failures are not retried.

        Raises:
            PushError: When every attempt failed
        """
        attempts = self.retries + 1
        stderr = ""
        for attempt in range(1, attempts + 1):
            success, stderr = self._attempt_push(image)
            if success:
                logger.info(f"✓ Pushed {image}")
                return

            error_type = classify_error_type(stderr)
            if not is_retryable_push_error(stderr):
                logger.error(f"Push of {image} failed ({error_type}), not retrying")
                break

            if attempt < attempts:
                logger.warning(
                    f"Push of {image} failed ({error_type}), "
                    f"retrying ({attempt}/{self.retries}) in {self.retry_delay:.0f}s"
                )
                time.sleep(self.retry_delay)

        raise PushError(f"Failed to push {image}: {stderr.strip() or 'unknown error'}", image=image)

    def publish(self, images: list[str]) -> list[str]:
        """
        Log in, push every image in order, then log out unconditionally.

        Returns:
            The images that were pushed

        Raises:
            PushError: On login failure or an image that could not be pushed
        """
        if not images:
            logger.info("Nothing to push")
            return []

        pushed = []
        self.login()
        try:
            for image in images:
                self.push(image)
                pushed.append(image)
        finally:
            self.logout()
        return pushed
