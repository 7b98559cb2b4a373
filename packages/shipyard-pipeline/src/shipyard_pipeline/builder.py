"""
Build Runner: one container image build per resolved target, serial or
fanned out across a thread pool.
"""

import logging
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from shipyard_pipeline.constants import (
    BUILD_LOG_TEMPLATE,
    DEFAULT_BUILD_TIMEOUT,
    DEFAULT_RUNTIME,
    ROLE_BUILD_ARG,
    VERSION_BUILD_ARG,
)
from shipyard_pipeline.exceptions import BuildError
from shipyard_pipeline.models import BuildTarget

logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 20


@dataclass(frozen=True)
class BuildOutcome:
    """Result of building one target."""

    target: BuildTarget
    image: str
    success: bool
    duration: float = 0.0
    timed_out: bool = False
    returncode: Optional[int] = None
    log_path: Optional[Path] = None
    error: str = ""


class BuildRunner:
    """
    Runs `<runtime> build` for each target.

    Each build writes its output to its own log file so concurrent builds
    never share an output path. In parallel mode every launched build is
    allowed to finish before failures are reported.
    """

    def __init__(
        self,
        runtime: str = DEFAULT_RUNTIME,
        timeout: int = DEFAULT_BUILD_TIMEOUT,
        use_cache: bool = True,
        parallel: bool = False,
        max_workers: int = 0,
        log_dir: Path = Path("."),
    ):
        self.runtime = runtime
        self.timeout = timeout
        self.use_cache = use_cache
        self.parallel = parallel
        self.max_workers = max_workers
        self.log_dir = Path(log_dir)

    def build_command(self, target: BuildTarget, image: str, version: str) -> list[str]:
        """Assemble the build argv. Arguments are passed verbatim, no shell."""
        cmd = [
            self.runtime,
            "build",
            "-f",
            target.build_file,
            "--build-arg",
            f"{ROLE_BUILD_ARG}={target.name}",
            "--build-arg",
            f"{VERSION_BUILD_ARG}={version}",
            "-t",
            image,
        ]
        if not self.use_cache:
            cmd.append("--no-cache")
        cmd.append(target.context)
        return cmd

    def log_path_for(self, target: BuildTarget) -> Path:
        return self.log_dir / BUILD_LOG_TEMPLATE.format(name=target.name)

    def build_one(
        self, target: BuildTarget, version: str, registry: Optional[str] = None
    ) -> BuildOutcome:
        """
        Build a single target.

        Never raises for build problems; failures, timeouts and a missing
        runtime binary come back as an unsuccessful BuildOutcome.
        """
        image = target.image_ref(version, registry)
        cmd = self.build_command(target, image, version)
        log_path = self.log_path_for(target)

        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(log_path, "w", encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot write build log for {target.name}: {e}")
            return BuildOutcome(
                target=target,
                image=image,
                success=False,
                error=f"cannot write build log {log_path}: {e.strerror or e}",
            )

        logger.info(f"Building {target.name} -> {image}")
        logger.debug(f"Build command: {' '.join(cmd)}")
        started = time.monotonic()

        try:
            with log_file:
                result = subprocess.run(
                    cmd,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    text=True,
                    timeout=self.timeout,
                )
        except subprocess.TimeoutExpired:
            duration = time.monotonic() - started
            logger.error(f"Build of {target.name} timed out after {self.timeout}s")
            return BuildOutcome(
                target=target,
                image=image,
                success=False,
                duration=duration,
                timed_out=True,
                log_path=log_path,
                error=f"timed out after {self.timeout}s",
            )
        except FileNotFoundError:
            logger.error(f"Container runtime '{self.runtime}' not found in PATH")
            return BuildOutcome(
                target=target,
                image=image,
                success=False,
                log_path=log_path,
                error=f"{self.runtime} not found",
            )

        duration = time.monotonic() - started
        if result.returncode != 0:
            tail = _tail(log_path)
            logger.error(
                f"Build of {target.name} failed with exit code {result.returncode}"
                + (f"\n{tail}" if tail else "")
            )
            return BuildOutcome(
                target=target,
                image=image,
                success=False,
                duration=duration,
                returncode=result.returncode,
                log_path=log_path,
                error=f"exit code {result.returncode}",
            )

        logger.info(f"✓ Built {image} in {duration:.1f}s")
        return BuildOutcome(
            target=target,
            image=image,
            success=True,
            duration=duration,
            returncode=0,
            log_path=log_path,
        )

    def build_all(
        self,
        targets: list[BuildTarget],
        version: str,
        registry: Optional[str] = None,
    ) -> list[BuildOutcome]:
        """
        Build every target.

        Args:
            targets: Targets in catalog order
            version: Version tag passed as build arg and image tag
            registry: Optional registry prefix for the image reference

        Returns:
            One successful BuildOutcome per target, in input order

        Raises:
            BuildError: If any build failed. Serial mode stops at the first
                failure; parallel mode waits for all builds first.
        """
        if self.parallel and len(targets) > 1:
            outcomes = self._build_parallel(targets, version, registry)
        else:
            outcomes = self._build_serial(targets, version, registry)

        failed = [o for o in outcomes if not o.success]
        if failed:
            details = ", ".join(f"{o.target.name} ({o.error})" for o in failed)
            raise BuildError(
                f"Build failed for {details}",
                failed_targets=[o.target.name for o in failed],
            )
        return outcomes

    def _build_serial(
        self, targets: list[BuildTarget], version: str, registry: Optional[str]
    ) -> list[BuildOutcome]:
        outcomes = []
        for index, target in enumerate(targets):
            outcome = self.build_one(target, version, registry)
            outcomes.append(outcome)
            if not outcome.success:
                skipped = [t.name for t in targets[index + 1:]]
                if skipped:
                    logger.warning(f"Skipping remaining builds: {', '.join(skipped)}")
                break
        return outcomes

    def _build_parallel(
        self, targets: list[BuildTarget], version: str, registry: Optional[str]
    ) -> list[BuildOutcome]:
        workers = self.max_workers or len(targets)
        logger.info(f"Building {len(targets)} targets with {workers} workers")

        by_name: dict[str, BuildOutcome] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_target = {
                executor.submit(self.build_one, target, version, registry): target
                for target in targets
            }
            for future in as_completed(future_to_target):
                target = future_to_target[future]
                try:
                    by_name[target.name] = future.result()
                except Exception as e:
                    logger.exception(f"Unexpected error building {target.name}")
                    by_name[target.name] = BuildOutcome(
                        target=target,
                        image=target.image_ref(version, registry),
                        success=False,
                        error=str(e),
                    )

        return [by_name[target.name] for target in targets]


def _tail(path: Path, lines: int = LOG_TAIL_LINES) -> str:
    """Last few lines of a build log, for error messages."""
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    return "\n".join(content.splitlines()[-lines:])
