"""
Scanner Adapter: runs trivy against a built image and parses its JSON output.

The parsed findings are the only input to the pass/warn/fail decision. The
scanner's exit status is used solely to detect that the scanner itself
could not run.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Iterable

from shipyard_pipeline.constants import (
    DEFAULT_SCAN_TIMEOUT,
    SCAN_PROCESS_GRACE,
    SCANNER_BINARY,
)
from shipyard_pipeline.error_patterns import is_scanner_infrastructure_error
from shipyard_pipeline.exceptions import ScanInfrastructureError
from shipyard_pipeline.models import ALL_SEVERITIES, BuildTarget, Finding, ScanResult, Severity

logger = logging.getLogger(__name__)


def parse_findings(document: Any) -> tuple[Finding, ...]:
    """
    Extract findings from a trivy JSON document.

    Expected shape: {"Results": [{"Target": ..., "Vulnerabilities": [...]}]}.
    Null or missing lists are treated as empty; entries that are not objects
    are skipped.
    """
    if not isinstance(document, dict):
        return ()

    findings = []
    for result in document.get("Results") or []:
        if not isinstance(result, dict):
            continue
        for vuln in result.get("Vulnerabilities") or []:
            if isinstance(vuln, dict):
                findings.append(Finding.from_trivy(vuln))
    return tuple(findings)


def load_scan_file(path: Path) -> tuple[Finding, ...]:
    """
    Read findings from a scan output file.

    A missing, empty or unparseable file yields no findings and a warning,
    so one bad file cannot abort aggregation.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Scan output {path} is missing, counting 0 findings")
        return ()

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not read scan output {path} ({e}), counting 0 findings")
        return ()

    if not content.strip():
        logger.warning(f"Scan output {path} is empty, counting 0 findings")
        return ()

    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Scan output {path} is not valid JSON ({e}), counting 0 findings")
        return ()

    return parse_findings(document)


class TrivyScanner:
    """Invokes `trivy image` and turns its output into a ScanResult."""

    def __init__(
        self,
        binary: str = SCANNER_BINARY,
        timeout: int = DEFAULT_SCAN_TIMEOUT,
        severities: Iterable[Severity] = ALL_SEVERITIES,
        ignore_unfixed: bool = True,
    ):
        self.binary = binary
        self.timeout = timeout
        self.severities = tuple(severities)
        self.ignore_unfixed = ignore_unfixed

    def build_command(self, image_ref: str, output_path: Path) -> list[str]:
        cmd = [
            self.binary,
            "image",
            "--format",
            "json",
            "--severity",
            ",".join(s.value for s in self.severities),
            "--timeout",
            f"{self.timeout}s",
        ]
        if self.ignore_unfixed:
            cmd.append("--ignore-unfixed")
        cmd.extend(["-o", str(output_path), image_ref])
        return cmd

    def scan(self, target: BuildTarget, image_ref: str, output_path: Path) -> ScanResult:
        """
        Scan one image and parse the findings written to output_path.

        Args:
            target: Target the image was built for
            image_ref: Image reference (name:tag) to scan
            output_path: Where trivy writes its JSON report

        Returns:
            ScanResult with the parsed findings

        Raises:
            ScanInfrastructureError: If the scanner is missing, times out, or
                fails for network/database/daemon reasons, or exits non-zero
                without writing a report
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.unlink(missing_ok=True)
        cmd = self.build_command(image_ref, output_path)

        logger.info(f"Scanning image: {image_ref}")
        logger.debug(f"Scan command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout + SCAN_PROCESS_GRACE,
            )
        except FileNotFoundError as e:
            raise ScanInfrastructureError(
                f"Scanner '{self.binary}' not found in PATH", target=target.name
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ScanInfrastructureError(
                f"Scan of {image_ref} did not finish within {self.timeout}s",
                target=target.name,
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            last_line = stderr.splitlines()[-1] if stderr else "no output"
            if is_scanner_infrastructure_error(stderr):
                raise ScanInfrastructureError(
                    f"Scanner failed for {image_ref}: {last_line}",
                    target=target.name,
                )
            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ScanInfrastructureError(
                    f"Scanner exited with code {result.returncode} for {image_ref} "
                    f"without writing a report: {last_line}",
                    target=target.name,
                )
            logger.info(
                f"Scanner exited with code {result.returncode} for {image_ref} "
                "(vulnerabilities detected)"
            )

        findings = load_scan_file(output_path)
        logger.info(f"{target.name}: {len(findings)} findings")
        return ScanResult(target=target, findings=findings, report_path=output_path)
