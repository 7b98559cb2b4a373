"""
Error pattern constants for scanner and registry operations.

Classifies stderr from trivy and docker so the pipeline can tell
"the scanner found vulnerabilities" apart from "the scanner could not run",
and decide which push failures are worth retrying.
"""

# Authentication/authorization failures. Retrying will not help.
AUTH_ERROR_PATTERNS = [
    "401",
    "403",
    "unauthorized",
    "forbidden",
    "denied",
    "authentication required",
    "no basic auth credentials",
    "incorrect username or password",
    "not authorized",
]

RATE_LIMIT_PATTERNS = [
    "429",
    "toomanyrequests",
    "rate limit",
    "too many requests",
]

NOT_FOUND_PATTERNS = [
    "manifest unknown",
    "no such image",
    "unable to find the specified image",
    "repository does not exist",
]

# Network failures reaching a registry or the vulnerability DB
NETWORK_ERROR_PATTERNS = [
    "no such host",
    "connection refused",
    "connection reset",
    "dial tcp",
    "i/o timeout",
    "tls handshake timeout",
    "network is unreachable",
    "context deadline exceeded",
]

# Scanner could not initialize or load its vulnerability database
SCANNER_DB_PATTERNS = [
    "failed to download vulnerability db",
    "db error",
    "vulnerability db",
    "unable to initialize",
    "init error",
    "database initialize",
]

# Container daemon not reachable
DAEMON_ERROR_PATTERNS = [
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "docker.sock",
]


def _matches(stderr: str, patterns: list[str]) -> bool:
    stderr_lower = (stderr or "").lower()
    return any(pattern in stderr_lower for pattern in patterns)


def is_auth_error(stderr: str) -> bool:
    """Check if error is due to authentication/authorization failure."""
    return _matches(stderr, AUTH_ERROR_PATTERNS)


def is_rate_limit_error(stderr: str) -> bool:
    """Check if error is due to registry rate limiting."""
    return _matches(stderr, RATE_LIMIT_PATTERNS)


def is_not_found_error(stderr: str) -> bool:
    """Check if error is due to a missing image or repository."""
    return _matches(stderr, NOT_FOUND_PATTERNS)


def is_network_error(stderr: str) -> bool:
    """Check if error is a connectivity failure."""
    return _matches(stderr, NETWORK_ERROR_PATTERNS)


def is_scanner_infrastructure_error(stderr: str) -> bool:
    """
    Check if scanner stderr describes a failure to run, not a finding.

    Network, database, daemon and missing-image errors mean the scan never
    produced trustworthy output. Anything else accompanying a non-zero exit
    is treated as "vulnerabilities detected".

    Args:
        stderr: Error output from the scanner

    Returns:
        True if the scan itself failed
    """
    return (
        is_network_error(stderr)
        or is_not_found_error(stderr)
        or _matches(stderr, SCANNER_DB_PATTERNS)
        or _matches(stderr, DAEMON_ERROR_PATTERNS)
    )


def is_retryable_push_error(stderr: str) -> bool:
    """
    Check if a failed push is worth another attempt.

    Authentication errors are permanent; everything else (network blips,
    rate limits, registry 5xx) gets the bounded retry.
    """
    return not is_auth_error(stderr)


def classify_error_type(stderr: str) -> str:
    """
    Classify the type of error from stderr output.

    Args:
        stderr: Error output from docker or trivy

    Returns:
        Error type: "timeout", "auth", "rate_limit", "not_found", "network" or "unknown"
    """
    if stderr == "timeout":
        return "timeout"

    if is_auth_error(stderr):
        return "auth"

    if is_rate_limit_error(stderr):
        return "rate_limit"

    if is_not_found_error(stderr):
        return "not_found"

    if is_network_error(stderr):
        return "network"

    return "unknown"
