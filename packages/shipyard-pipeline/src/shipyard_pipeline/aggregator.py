"""
Outcome Aggregator: turns per-target scan results into a single OK / WARN /
FAIL decision.

`aggregate` is a pure function of its inputs; calling it twice with the
same results and policy yields equal reports.
"""

import logging
from typing import Iterable

from shipyard_pipeline.config import parse_policy, parse_severity_list
from shipyard_pipeline.models import (
    AggregateReport,
    FailurePolicy,
    Outcome,
    ScanResult,
    Severity,
)

logger = logging.getLogger(__name__)

DEFAULT_ALLOWLIST: tuple[Severity, ...] = (Severity.HIGH, Severity.CRITICAL)

__all__ = [
    "DEFAULT_ALLOWLIST",
    "aggregate",
    "decide_outcome",
    "parse_allowlist",
    "parse_policy",
    "reportable_count",
]


def parse_allowlist(text: str) -> tuple[Severity, ...]:
    """Parse the severities that count toward the outcome, e.g. "HIGH,CRITICAL"."""
    return parse_severity_list(text, "severities")


def reportable_count(result: ScanResult, allowlist: Iterable[Severity]) -> int:
    """Number of findings in result whose severity is allowlisted.

    Findings with an unrecognized severity string never count.
    """
    allowed = set(allowlist)
    return sum(1 for f in result.findings if f.severity is not None and f.severity in allowed)


def decide_outcome(total_reportable: int, policy: FailurePolicy) -> Outcome:
    """Map a reportable total to an outcome under a failure policy."""
    if total_reportable == 0:
        return Outcome.OK
    if policy is FailurePolicy.FAIL_BUILD:
        return Outcome.FAIL
    return Outcome.WARN


def aggregate(
    results: Iterable[ScanResult],
    allowlist: Iterable[Severity] = DEFAULT_ALLOWLIST,
    policy: FailurePolicy = FailurePolicy.FAIL_BUILD,
) -> AggregateReport:
    """
    Count allowlisted findings per target and decide the outcome.

    Args:
        results: One ScanResult per target
        allowlist: Severities that count toward the decision
        policy: fail-build turns any reportable finding into FAIL,
            warn-only into WARN

    Returns:
        AggregateReport with per-target counts, total and outcome
    """
    allowlist = tuple(s for s in Severity if s in set(allowlist))

    per_target = {}
    reportable = {}
    for result in results:
        name = result.target.name
        unrecognized = [f.raw_severity for f in result.findings if f.severity is None]
        if unrecognized:
            logger.debug(
                f"{name}: ignoring {len(unrecognized)} findings with unrecognized "
                f"severity ({', '.join(sorted(set(unrecognized)))})"
            )
        per_target[name] = result.counts
        reportable[name] = reportable_count(result, allowlist)

    total = sum(reportable.values())
    outcome = decide_outcome(total, policy)
    over_threshold = tuple(name for name, count in reportable.items() if count > 0)

    return AggregateReport(
        per_target=per_target,
        reportable=reportable,
        total_reportable=total,
        outcome=outcome,
        allowlist=allowlist,
        policy=policy,
        over_threshold=over_threshold,
    )
