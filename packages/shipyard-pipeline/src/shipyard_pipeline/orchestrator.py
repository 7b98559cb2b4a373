"""
Pipeline orchestration: resolve -> build -> scan -> aggregate -> report -> publish.

Every stage hands an explicit value to the next one. The final Outcome is
the worst of the stage outcomes; no stage mutates shared state to signal
a warning.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from shipyard_core.auth import load_registry_credentials
from shipyard_core.context import ExecutionContext

from shipyard_pipeline.aggregator import aggregate
from shipyard_pipeline.builder import BuildOutcome, BuildRunner
from shipyard_pipeline.config import PipelineSettings
from shipyard_pipeline.constants import SCAN_FILE_TEMPLATE
from shipyard_pipeline.exceptions import ConfigurationError
from shipyard_pipeline.models import (
    AggregateReport,
    BuildTarget,
    Outcome,
    PipelineStatus,
    ScanResult,
)
from shipyard_pipeline.publisher import Publisher
from shipyard_pipeline.report import ReportWriter
from shipyard_pipeline.resolver import resolve_targets
from shipyard_pipeline.scanner import TrivyScanner, load_scan_file

logger = logging.getLogger(__name__)

SCAN_FILE_PATTERN = re.compile(r"trivy-(.*)\.json$")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class PipelineRun:
    """What a pipeline invocation produced."""

    outcome: Outcome
    report: AggregateReport
    builds: tuple[BuildOutcome, ...] = ()
    pushed: tuple[str, ...] = ()
    artifacts: dict[str, str] = field(default_factory=dict)

    @property
    def status(self) -> PipelineStatus:
        return self.outcome.status


def artifact_name_for(image: str) -> str:
    """File-safe short name for an image reference ("acme/web:v1" -> "web")."""
    repository = image.rsplit("/", 1)[-1].split("@", 1)[0].split(":", 1)[0]
    return _UNSAFE_NAME_CHARS.sub("-", repository) or "image"


class PipelineOrchestrator:
    """Drives one pipeline run over a build catalog.

    Collaborators default to instances configured from settings; tests
    inject their own.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        ctx: ExecutionContext,
        catalog: Optional[dict[str, BuildTarget]] = None,
        builder: Optional[BuildRunner] = None,
        scanner: Optional[TrivyScanner] = None,
        publisher: Optional[Publisher] = None,
        writer: Optional[ReportWriter] = None,
    ):
        self.settings = settings
        self.ctx = ctx
        self.catalog = catalog or {}
        self.builder = builder or BuildRunner(
            timeout=settings.build_timeout,
            use_cache=settings.use_cache,
            parallel=settings.parallel,
            max_workers=settings.max_workers,
            log_dir=settings.output_dir,
        )
        self.scanner = scanner or TrivyScanner(
            timeout=settings.scan_timeout,
            severities=settings.scan_severities,
            ignore_unfixed=settings.ignore_unfixed,
        )
        self.publisher = publisher
        self.writer = writer or ReportWriter(settings.output_dir, settings.template_dir)

    def _stage(self, fraction: float, message: str) -> None:
        """Start a stage, unless the run was cancelled in the meantime."""
        self.ctx.raise_if_cancelled(message)
        self._report(fraction, message)

    def _report(self, fraction: float, message: str) -> None:
        logger.info(message)
        self.ctx.progress(fraction, message)

    def _scan_path(self, name: str) -> Path:
        return self.settings.output_dir / SCAN_FILE_TEMPLATE.format(name=name)

    def _resolve_publisher(self) -> Publisher:
        """Publisher for --push, with credentials checked before anything runs."""
        if self.publisher is not None:
            return self.publisher
        credentials = self.ctx.credentials
        if credentials is None:
            try:
                credentials = load_registry_credentials()
            except RuntimeError as e:
                raise ConfigurationError(str(e)) from e
        self.publisher = Publisher(credentials=credentials, registry=self.settings.registry)
        return self.publisher

    def _write_reports(
        self, results: list[ScanResult], report: AggregateReport
    ) -> dict[str, str]:
        artifacts: dict[str, str] = {}
        for result in results:
            if result.report_path is not None and result.report_path.exists():
                artifacts[f"scan-{result.target.name}"] = str(result.report_path)
            path = self.writer.write_target_report(result, report.allowlist)
            artifacts[f"report-{result.target.name}"] = str(path)
        artifacts["summary"] = str(self.writer.write_summary(report))
        return artifacts

    def run(self) -> PipelineRun:
        """
        Run the full pipeline.

        Returns:
            PipelineRun with the merged outcome

        Raises:
            ConfigurationError: Bad ref, selection or missing push credentials,
                raised before any build starts
            BuildError: A build failed or timed out
            ScanInfrastructureError: The scanner could not run
            PushError: Login or push failed after retries
            RunCancelled: Cancellation was requested between stages
        """
        settings = self.settings
        targets = list(
            resolve_targets(settings.selection, self.catalog, strict=settings.strict).values()
        )
        version = settings.version_tag
        publisher = self._resolve_publisher() if settings.push else None
        stage_outcomes = []

        self._stage(0.1, f"Building {len(targets)} target(s) at {version}")
        builds = self.builder.build_all(targets, version, settings.registry)
        stage_outcomes.append(Outcome.OK)

        self._stage(0.4, f"Scanning {len(builds)} image(s)")
        results = [
            self.scanner.scan(build.target, build.image, self._scan_path(build.target.name))
            for build in builds
        ]

        self._stage(0.7, "Aggregating findings")
        report = aggregate(results, settings.allowlist, settings.policy)
        stage_outcomes.append(report.outcome)

        self._stage(0.8, "Writing reports")
        artifacts = self._write_reports(results, report)

        pushed: list[str] = []
        if publisher is None:
            logger.info("Push disabled, skipping publish")
        elif report.outcome is Outcome.FAIL:
            logger.warning("Outcome is FAIL, skipping publish")
        else:
            self._stage(0.9, f"Publishing {len(builds)} image(s)")
            pushed = publisher.publish([build.image for build in builds])
            stage_outcomes.append(Outcome.OK)

        outcome = Outcome.worst(*stage_outcomes)
        self._report(1.0, f"Pipeline finished: {outcome.status.value}")
        return PipelineRun(
            outcome=outcome,
            report=report,
            builds=tuple(builds),
            pushed=tuple(pushed),
            artifacts=artifacts,
        )

    def scan_image(self, image: str) -> PipelineRun:
        """Scan one existing image and render its report, without building."""
        if not image or not image.strip():
            raise ConfigurationError("scan requires --image (e.g. acme/web:v1.2.0)")
        image = image.strip()
        name = artifact_name_for(image)
        target = BuildTarget(name=name, build_file="", tag=image)

        self._stage(0.2, f"Scanning image: {image}")
        result = self.scanner.scan(target, image, self._scan_path(name))
        report = aggregate([result], self.settings.allowlist, self.settings.policy)

        self._stage(0.8, "Writing report")
        artifacts = {}
        if result.report_path is not None and result.report_path.exists():
            artifacts[f"scan-{name}"] = str(result.report_path)
        path = self.writer.write_target_report(result, report.allowlist, artifact_name=image)
        artifacts[f"report-{name}"] = str(path)

        self._report(1.0, f"Scan finished: {report.outcome.status.value}")
        return PipelineRun(outcome=report.outcome, report=report, artifacts=artifacts)

    def summarize(self, report_dir: Optional[Path] = None) -> PipelineRun:
        """
        Aggregate every trivy-<name>.json in a directory into the summary dashboard.

        Raises:
            ConfigurationError: If the directory holds no scan files
        """
        report_dir = Path(report_dir or self.settings.output_dir)
        paths = sorted(p for p in report_dir.glob("trivy-*.json") if p.is_file())
        if not paths:
            raise ConfigurationError(f"No trivy-*.json files found in {report_dir}")

        self._stage(0.2, f"Reading {len(paths)} scan file(s) from {report_dir}")
        results = []
        for path in paths:
            name = SCAN_FILE_PATTERN.search(path.name).group(1)
            target = BuildTarget(name=name, build_file="", tag=name)
            results.append(ScanResult(target=target, findings=load_scan_file(path), report_path=path))

        report = aggregate(results, self.settings.allowlist, self.settings.policy)
        writer = self.writer
        if writer.output_dir != report_dir:
            writer = ReportWriter(report_dir, self.settings.template_dir)

        self._stage(0.8, "Writing summary dashboard")
        summary = writer.write_summary(report)

        self._report(1.0, f"Summary finished: {report.outcome.status.value}")
        return PipelineRun(
            outcome=report.outcome,
            report=report,
            artifacts={"summary": str(summary)},
        )
