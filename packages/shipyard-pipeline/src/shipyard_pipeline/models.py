"""
Data models for build targets, scan findings and aggregated outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional


class Severity(Enum):
    """Scanner severity levels, declared from least to most severe."""

    UNKNOWN = "UNKNOWN"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Severity"]:
        """Map a scanner severity string to a Severity.

        Matching is case-sensitive against the scanner's upper-case labels.
        Anything else (including "high" or None) returns None.
        """
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


ALL_SEVERITIES: tuple[Severity, ...] = tuple(Severity)


class Outcome(Enum):
    """Tri-state result of a scan aggregation pass."""

    OK = "ok"
    WARN = "warn"
    FAIL = "fail"

    @property
    def rank(self) -> int:
        return list(Outcome).index(self)

    @classmethod
    def worst(cls, *outcomes: "Outcome") -> "Outcome":
        """Merge outcomes with worst-of semantics (FAIL > WARN > OK)."""
        return max(outcomes, key=lambda o: o.rank, default=cls.OK)

    @property
    def status(self) -> "PipelineStatus":
        return {
            Outcome.OK: PipelineStatus.SUCCESS,
            Outcome.WARN: PipelineStatus.UNSTABLE,
            Outcome.FAIL: PipelineStatus.FAILED,
        }[self]


class PipelineStatus(Enum):
    """Final status line of a pipeline run."""

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILED = "FAILED"


class FailurePolicy(Enum):
    """What a non-zero reportable count does to the pipeline."""

    FAIL_BUILD = "fail-build"
    WARN_ONLY = "warn-only"


@dataclass(frozen=True)
class BuildTarget:
    """A named buildable image.

    Attributes:
        name: Catalog key, also passed to the build as the role name.
        build_file: Path to the Dockerfile.
        tag: Image repository the target is tagged as (e.g. "acme/web").
        context: Build context directory.
    """

    name: str
    build_file: str
    tag: str
    context: str = "."

    def image_ref(self, version: str, registry: Optional[str] = None) -> str:
        """Full image reference for a version, optionally registry-qualified."""
        repository = f"{registry.rstrip('/')}/{self.tag}" if registry else self.tag
        return f"{repository}:{version}"


@dataclass(frozen=True)
class Finding:
    """One vulnerability reported by the scanner for an artifact."""

    id: str
    severity: Optional[Severity]
    raw_severity: str
    package_name: str
    installed_version: str
    fixed_version: Optional[str]
    title: str
    description: str = ""

    @classmethod
    def from_trivy(cls, vuln: dict[str, Any]) -> "Finding":
        """Build a Finding from one entry of a trivy Vulnerabilities list."""
        raw = vuln.get("Severity")
        return cls(
            id=str(vuln.get("VulnerabilityID", "")),
            severity=Severity.parse(raw),
            raw_severity="" if raw is None else str(raw),
            package_name=str(vuln.get("PkgName", "")),
            installed_version=str(vuln.get("InstalledVersion", "")),
            fixed_version=vuln.get("FixedVersion") or None,
            title=str(vuln.get("Title") or ""),
            description=str(vuln.get("Description") or ""),
        )


@dataclass(frozen=True)
class SeverityCounts:
    """Finding counts per severity for one target."""

    unknown: int = 0
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> "SeverityCounts":
        tally = {severity: 0 for severity in Severity}
        for finding in findings:
            if finding.severity is not None:
                tally[finding.severity] += 1
        return cls(**{severity.name.lower(): n for severity, n in tally.items()})

    def count(self, severity: Severity) -> int:
        return getattr(self, severity.name.lower())

    def count_in(self, severities: Iterable[Severity]) -> int:
        return sum(self.count(s) for s in set(severities))

    @property
    def total(self) -> int:
        return self.count_in(Severity)


@dataclass(frozen=True)
class ScanResult:
    """Findings for one built target. Immutable once produced."""

    target: BuildTarget
    findings: tuple[Finding, ...] = ()
    report_path: Optional[Path] = None

    @property
    def counts(self) -> SeverityCounts:
        return SeverityCounts.from_findings(self.findings)


@dataclass(frozen=True)
class AggregateReport:
    """Counts and outcome derived from a set of ScanResults and a policy.

    Attributes:
        per_target: Full per-severity counts by target name, in input order.
        reportable: Allowlisted finding count by target name.
        total_reportable: Sum of reportable counts.
        outcome: OK, WARN or FAIL.
        allowlist: Severities that were counted.
        policy: Failure policy the outcome was decided under.
        over_threshold: Targets with at least one reportable finding.
    """

    per_target: dict[str, SeverityCounts]
    reportable: dict[str, int]
    total_reportable: int
    outcome: Outcome
    allowlist: tuple[Severity, ...]
    policy: FailurePolicy
    over_threshold: tuple[str, ...] = field(default=())

    @property
    def severity_totals(self) -> SeverityCounts:
        """Counts per severity summed across all targets."""
        return SeverityCounts(
            **{
                severity.name.lower(): sum(c.count(severity) for c in self.per_target.values())
                for severity in Severity
            }
        )
