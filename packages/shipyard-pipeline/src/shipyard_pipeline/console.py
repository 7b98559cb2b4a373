"""
Console output for the end-of-run summary.

These lines are for the person reading the CI log and are printed
directly, alongside (not instead of) logger output.
"""

from shipyard_pipeline.models import AggregateReport, Outcome


def separator(width: int = 60) -> str:
    """Return a visual separator line."""
    return "=" * width


def print_header(title: str, width: int = 60) -> None:
    """Print a header with separators."""
    print(f"\n{separator(width)}")
    print(title)
    print(separator(width))


def print_success(message: str) -> None:
    print(f"✓ {message}")


def print_warning(message: str) -> None:
    print(f"! {message}")


def print_error(message: str) -> None:
    print(f"✗ {message}")


def print_info(message: str) -> None:
    print(message)


def print_report(report: AggregateReport) -> None:
    """Print per-target reportable counts and the outcome line."""
    allowlist = "/".join(s.value for s in report.allowlist)
    print_header(f"Scan summary ({allowlist}, policy {report.policy.value})")

    width = max((len(name) for name in report.reportable), default=0)
    for name, count in report.reportable.items():
        print_info(f"  {name.ljust(width)}  {count}")

    message = f"{report.total_reportable} reportable finding(s)"
    if report.over_threshold:
        message += f" in {', '.join(report.over_threshold)}"

    if report.outcome is Outcome.OK:
        print_success(f"No {allowlist} vulnerabilities found")
    elif report.outcome is Outcome.WARN:
        print_warning(f"{message} (warn-only)")
    else:
        print_error(message)
