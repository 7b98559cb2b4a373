"""
Centralized configuration constants for the Shipyard pipeline.

Single source of truth for defaults, timeouts and file naming used across
the resolver, builder, scanner, report and publisher modules.
"""

__version__ = "0.3.0"

# ============================================================================
# External tools
# ============================================================================

DEFAULT_RUNTIME = "docker"
"""Container runtime used for build, login, push and logout."""

SCANNER_BINARY = "trivy"
"""Vulnerability scanner executable."""

REQUIRED_TOOLS: list[str] = [DEFAULT_RUNTIME, SCANNER_BINARY]
"""External CLIs the full pipeline shells out to."""

# ============================================================================
# Target selection
# ============================================================================

WILDCARD_TOKENS = frozenset({"all", "*"})
"""Selection tokens that expand to the whole catalog."""

DEFAULT_SELECTION = "all"
"""Selection used when --targets is not given."""

DEFAULT_CATALOG_FILE = "shipyard.yaml"
"""Build catalog read when --catalog is not given."""

# ============================================================================
# Git reference handling
# ============================================================================

REF_PREFIXES = ("refs/heads/", "refs/tags/")
"""Prefixes stripped from fully-qualified git references."""

ALLOWED_REF_PATTERNS = ("v*", "release*")
"""Glob patterns a reference must match ("release*" covers "release/*")."""

# ============================================================================
# Build arguments
# ============================================================================

ROLE_BUILD_ARG = "ROLE"
"""Build argument carrying the target name."""

VERSION_BUILD_ARG = "VERSION"
"""Build argument carrying the version string derived from the reference."""

# ============================================================================
# Severity policy
# ============================================================================

DEFAULT_ALLOWLIST = "HIGH,CRITICAL"
"""Severities that count toward the pass/warn/fail decision."""

DEFAULT_SCAN_SEVERITIES = "UNKNOWN,LOW,MEDIUM,HIGH,CRITICAL"
"""Severities requested from the scanner (full set, so the summary has every column)."""

POLICY_FAIL_BUILD = "fail-build"
POLICY_WARN_ONLY = "warn-only"
DEFAULT_POLICY = POLICY_FAIL_BUILD

# ============================================================================
# Timeouts (in seconds)
# ============================================================================

DEFAULT_BUILD_TIMEOUT = 1800
"""Per-target image build timeout (30 minutes)."""

DEFAULT_SCAN_TIMEOUT = 600
"""Scanner timeout (10 minutes), passed to trivy and used as the process timeout."""

SCAN_PROCESS_GRACE = 60
"""Extra seconds the scanner process gets beyond its own --timeout."""

REGISTRY_TIMEOUT = 120
"""Timeout for docker login/logout."""

PUSH_TIMEOUT = 900
"""Timeout for a single docker push attempt (15 minutes)."""

# ============================================================================
# Publishing
# ============================================================================

PUSH_RETRIES = 2
"""Extra attempts per image after the first failed push."""

PUSH_RETRY_DELAY = 5.0
"""Seconds to wait between push attempts."""

# ============================================================================
# Output layout
# ============================================================================

DEFAULT_OUTPUT_DIR = "trivy-reports"
"""Directory for scan JSON, HTML reports and build logs."""

SCAN_FILE_TEMPLATE = "trivy-{name}.json"
TARGET_REPORT_TEMPLATE = "trivy-{name}.html"
SUMMARY_REPORT_FILE = "trivy-summary.html"
BUILD_LOG_TEMPLATE = "build-{name}.log"

DESCRIPTION_MAX_CHARS = 300
"""Finding descriptions are truncated to this length in HTML reports."""
