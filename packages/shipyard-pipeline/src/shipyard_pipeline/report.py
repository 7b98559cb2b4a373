"""
Report Renderer: HTML reports from scan results using Jinja2 templates.

Two documents are produced: one per artifact (findings filtered to the
allowlist, or a success banner) and a combined summary dashboard with a
row per target, five severity columns, a total, and charts.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape

from shipyard_pipeline.constants import (
    DESCRIPTION_MAX_CHARS,
    SUMMARY_REPORT_FILE,
    TARGET_REPORT_TEMPLATE,
)
from shipyard_pipeline.models import AggregateReport, ScanResult, Severity

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATES = Path(__file__).resolve().parent / "templates"
TARGET_TEMPLATE_NAME = "target_report.html.j2"
SUMMARY_TEMPLATE_NAME = "summary.html.j2"

SEVERITY_COLORS = {
    Severity.CRITICAL: "#8e0000",
    Severity.HIGH: "#d84315",
    Severity.MEDIUM: "#558b2f",
    Severity.LOW: "#0277bd",
    Severity.UNKNOWN: "#616161",
}

# Most severe first, matching the dashboard column order
COLUMN_ORDER: tuple[Severity, ...] = tuple(reversed(Severity))


def _shorten(text: Optional[str], limit: int = DESCRIPTION_MAX_CHARS) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit].rstrip() + "…"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def build_environment(template_dir: Optional[Path] = None) -> Environment:
    """
    Jinja2 environment over the bundled templates.

    Templates in template_dir, when given, take precedence by file name.
    """
    search = [FileSystemLoader(str(template_dir))] if template_dir else []
    search.append(FileSystemLoader(str(BUNDLED_TEMPLATES)))

    env = Environment(
        loader=ChoiceLoader(search),
        autoescape=select_autoescape(enabled_extensions=("html", "htm", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["shorten"] = _shorten
    return env


def render_target_report(
    result: ScanResult,
    allowlist: Iterable[Severity],
    artifact_name: Optional[str] = None,
    generated_at: Optional[str] = None,
    env: Optional[Environment] = None,
) -> str:
    """
    Render the per-artifact HTML report.

    Args:
        result: Scan result for one target
        allowlist: Severities to show; other findings are left out
        artifact_name: Heading for the report (defaults to the target name)
        generated_at: Timestamp string (defaults to now, UTC)
        env: Jinja2 environment (defaults to bundled templates)

    Returns:
        HTML document
    """
    allowed = set(allowlist)
    shown = [f for f in result.findings if f.severity is not None and f.severity in allowed]
    shown.sort(key=lambda f: (-f.severity.rank, f.package_name, f.id))

    env = env or build_environment()
    template = env.get_template(TARGET_TEMPLATE_NAME)
    return template.render(
        artifact_name=artifact_name or result.target.name,
        results=shown,
        allowlist=[s.value for s in COLUMN_ORDER if s in allowed],
        generated_at=generated_at or _timestamp(),
    )


def summary_rows(report: AggregateReport) -> list[dict]:
    """One row per target: name, counts keyed by severity label, total."""
    return [
        {
            "name": name,
            "counts": {s.value: counts.count(s) for s in COLUMN_ORDER},
            "total": counts.total,
            "over": name in report.over_threshold,
        }
        for name, counts in report.per_target.items()
    ]


def chart_data(report: AggregateReport) -> dict:
    """Datasets for the bar (per target) and pie (per severity) charts."""
    totals = report.severity_totals
    return {
        "labels": list(report.per_target),
        "datasets": [
            {
                "label": s.value,
                "data": [c.count(s) for c in report.per_target.values()],
                "backgroundColor": SEVERITY_COLORS[s],
            }
            for s in COLUMN_ORDER
        ],
        "severities": [s.value for s in COLUMN_ORDER],
        "totals": [totals.count(s) for s in COLUMN_ORDER],
        "colors": [SEVERITY_COLORS[s] for s in COLUMN_ORDER],
    }


def render_summary(
    report: AggregateReport,
    generated_at: Optional[str] = None,
    env: Optional[Environment] = None,
) -> str:
    """Render the combined summary dashboard for all targets."""
    env = env or build_environment()
    template = env.get_template(SUMMARY_TEMPLATE_NAME)
    return template.render(
        report=report,
        rows=summary_rows(report),
        chart=chart_data(report),
        severities=[s.value for s in COLUMN_ORDER],
        allowlist=[s.value for s in COLUMN_ORDER if s in report.allowlist],
        generated_at=generated_at or _timestamp(),
    )


class ReportWriter:
    """Writes rendered reports into the output directory."""

    def __init__(self, output_dir: Path, template_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir)
        self.env = build_environment(template_dir)

    def write_target_report(
        self,
        result: ScanResult,
        allowlist: Iterable[Severity],
        artifact_name: Optional[str] = None,
    ) -> Path:
        path = self.output_dir / TARGET_REPORT_TEMPLATE.format(name=result.target.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            render_target_report(result, allowlist, artifact_name=artifact_name, env=self.env),
            encoding="utf-8",
        )
        logger.info(f"Report generated: {path}")
        return path

    def write_summary(self, report: AggregateReport) -> Path:
        path = self.output_dir / SUMMARY_REPORT_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_summary(report, env=self.env), encoding="utf-8")
        logger.info(f"Summary dashboard created: {path}")
        return path
