"""ToolPlugin implementation for the build/scan/publish pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from shipyard_core.context import ExecutionContext, RunCancelled
from shipyard_core.deps import assert_dependencies
from shipyard_core.plugin import ResultStatus, ToolParam, ToolResult

from shipyard_pipeline import console
from shipyard_pipeline.config import PipelineSettings
from shipyard_pipeline.constants import (
    DEFAULT_ALLOWLIST,
    DEFAULT_BUILD_TIMEOUT,
    DEFAULT_CATALOG_FILE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_POLICY,
    DEFAULT_SCAN_SEVERITIES,
    DEFAULT_SCAN_TIMEOUT,
    DEFAULT_SELECTION,
    REQUIRED_TOOLS,
    SCANNER_BINARY,
    __version__,
)
from shipyard_pipeline.exceptions import (
    BuildError,
    ConfigurationError,
    PushError,
    ScanInfrastructureError,
)
from shipyard_pipeline.models import FailurePolicy, Outcome
from shipyard_pipeline.orchestrator import PipelineOrchestrator, PipelineRun

logger = logging.getLogger(__name__)

_OUTCOME_STATUS = {
    Outcome.OK: ResultStatus.SUCCESS,
    Outcome.WARN: ResultStatus.PARTIAL,
    Outcome.FAIL: ResultStatus.FAILURE,
}


class PipelinePlugin:
    """Shipyard plugin: build container images, scan them, report, publish."""

    name = "pipeline"
    description = "Build, vulnerability-scan, report on and publish container images"
    version = __version__
    requires_auth = False

    def get_params(self) -> list[ToolParam]:
        """Declare parameters for pipeline commands.

        The "command" parameter is a positional subcommand:
        - shipyard pipeline run --ref v1.2.0 --targets web,nginx
        - shipyard pipeline scan --image acme/web:v1.2.0
        - shipyard pipeline summarize --output-dir trivy-reports
        """
        return [
            ToolParam(
                name="command",
                description="Subcommand: run, scan or summarize",
                required=True,
                choices=["run", "scan", "summarize"],
            ),
            # Selection
            ToolParam(
                name="ref",
                description="Git branch or tag to build (must match v* or release*)",
            ),
            ToolParam(
                name="targets",
                description="Comma-separated target names, or 'all'",
                default=DEFAULT_SELECTION,
            ),
            ToolParam(
                name="strict",
                description="Fail on unknown target names instead of skipping them",
                type="bool",
            ),
            ToolParam(
                name="catalog",
                description=f"Build catalog YAML (default: {DEFAULT_CATALOG_FILE})",
                type="path",
            ),
            # Policy
            ToolParam(
                name="policy",
                description="What reportable findings do to the build",
                default=DEFAULT_POLICY,
                choices=[p.value for p in FailurePolicy],
            ),
            ToolParam(
                name="severities",
                description="Severities that count toward the outcome",
                default=DEFAULT_ALLOWLIST,
            ),
            ToolParam(
                name="scan-severities",
                description="Severities the scanner reports",
                default=DEFAULT_SCAN_SEVERITIES,
            ),
            ToolParam(
                name="ignore-unfixed",
                description="Skip vulnerabilities without a fixed version",
                type="bool",
                default=True,
            ),
            # Build
            ToolParam(
                name="cache",
                description="Use the build cache",
                type="bool",
                default=True,
            ),
            ToolParam(
                name="parallel",
                description="Build targets concurrently",
                type="bool",
            ),
            ToolParam(
                name="max-workers",
                description="Parallel build workers (0 = one per target)",
                type="int",
                default=0,
            ),
            ToolParam(
                name="build-timeout",
                description="Per-target build timeout in seconds",
                type="int",
                default=DEFAULT_BUILD_TIMEOUT,
            ),
            ToolParam(
                name="scan-timeout",
                description="Per-image scan timeout in seconds",
                type="int",
                default=DEFAULT_SCAN_TIMEOUT,
            ),
            # Publish
            ToolParam(
                name="push",
                description="Push images when the outcome is not FAIL",
                type="bool",
            ),
            ToolParam(
                name="registry",
                description="Registry host to tag and push to",
            ),
            # Output
            ToolParam(
                name="output-dir",
                description="Directory for scan JSON, HTML reports and build logs",
                type="path",
                default=DEFAULT_OUTPUT_DIR,
            ),
            ToolParam(
                name="template-dir",
                description="Directory with report templates overriding the bundled ones",
                type="path",
            ),
            ToolParam(
                name="image",
                description="Image reference to scan (scan only)",
            ),
            ToolParam(
                name="verbose",
                description="Enable verbose logging",
                type="bool",
            ),
        ]

    def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
        """Execute a pipeline command."""
        command = args.get("command")
        if command not in ("run", "scan", "summarize"):
            return ToolResult.failure(f"Unknown command: {command}")

        try:
            settings = PipelineSettings.from_args(args, ctx.config)
            if command == "run":
                logger.debug("Version tag: %s", settings.version_tag)
                catalog = settings.load_catalog(ctx.config)
            else:
                catalog = {}
        except ConfigurationError as e:
            return ToolResult.failure(str(e))

        try:
            if command == "run":
                assert_dependencies(REQUIRED_TOOLS)
            elif command == "scan":
                assert_dependencies([SCANNER_BINARY])
        except RuntimeError as e:
            return ToolResult.failure(str(e))

        orchestrator = PipelineOrchestrator(settings, ctx, catalog)
        try:
            if command == "run":
                result = orchestrator.run()
            elif command == "scan":
                result = orchestrator.scan_image(args.get("image") or "")
            else:
                result = orchestrator.summarize(Path(settings.output_dir))
        except ConfigurationError as e:
            return ToolResult.failure(str(e))
        except BuildError as e:
            return ToolResult.failure(
                str(e), {"command": command, "failed_targets": e.failed_targets}
            )
        except ScanInfrastructureError as e:
            return ToolResult.failure(
                f"Scan could not run: {e}", {"command": command, "target": e.target}
            )
        except PushError as e:
            return ToolResult.failure(str(e), {"command": command, "image": e.image})
        except RunCancelled as e:
            return ToolResult(status=ResultStatus.CANCELLED, summary=str(e))

        console.print_report(result.report)
        return self._to_tool_result(command, result)

    def _to_tool_result(self, command: str, run: PipelineRun) -> ToolResult:
        report = run.report
        allowlist = "/".join(s.value for s in report.allowlist)

        if run.outcome is Outcome.OK:
            summary = f"No {allowlist} vulnerabilities found"
        else:
            summary = (
                f"{report.total_reportable} {allowlist} finding(s) in "
                f"{', '.join(report.over_threshold)}"
            )
        if run.pushed:
            summary += f"; pushed {len(run.pushed)} image(s)"

        return ToolResult(
            status=_OUTCOME_STATUS[run.outcome],
            summary=f"{run.status.value}: {summary}",
            data={
                "command": command,
                "outcome": run.outcome.name,
                "status": run.status.value,
                "policy": report.policy.value,
                "total_reportable": report.total_reportable,
                "reportable": dict(report.reportable),
                "over_threshold": list(report.over_threshold),
                "images": [build.image for build in run.builds],
                "pushed": list(run.pushed),
            },
            artifacts=dict(run.artifacts),
        )
