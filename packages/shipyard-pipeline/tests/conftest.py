"""Shared fixtures for pipeline tests."""

import json

import pytest

from shipyard_core.auth import RegistryCredentials
from shipyard_core.context import ExecutionContext

from shipyard_pipeline.models import BuildTarget, Finding, ScanResult


def _make_finding(severity, vuln_id="CVE-2024-0001", package="openssl", raw=None):
    """Finding with a given severity; raw overrides the scanner string."""
    raw_severity = raw if raw is not None else (severity.value if severity else "")
    return Finding(
        id=vuln_id,
        severity=severity,
        raw_severity=raw_severity,
        package_name=package,
        installed_version="1.0.0",
        fixed_version="1.0.1",
        title=f"{package} issue",
        description=f"Description of {vuln_id}",
    )


def _make_result(target, *severities):
    findings = tuple(
        _make_finding(sev, vuln_id=f"CVE-2024-{i:04d}") for i, sev in enumerate(severities, 1)
    )
    return ScanResult(target=target, findings=findings)


def _trivy_document(*vulns):
    """Minimal trivy JSON report with one result holding vulns."""
    return {
        "SchemaVersion": 2,
        "ArtifactName": "acme/web:v1.0.0",
        "Results": [{"Target": "acme/web (debian 12)", "Vulnerabilities": list(vulns)}],
    }


def _trivy_vuln(severity, vuln_id="CVE-2024-0001", package="openssl"):
    return {
        "VulnerabilityID": vuln_id,
        "PkgName": package,
        "InstalledVersion": "3.0.11",
        "FixedVersion": "3.0.13",
        "Severity": severity,
        "Title": f"{package}: something bad",
        "Description": "A long description of the problem.",
    }


@pytest.fixture
def web_target():
    return BuildTarget(name="web", build_file="docker/web.Dockerfile", tag="acme/web")


@pytest.fixture
def nginx_target():
    return BuildTarget(name="nginx", build_file="docker/nginx.Dockerfile", tag="acme/nginx")


@pytest.fixture
def catalog(web_target, nginx_target):
    return {
        "web": web_target,
        "nginx": nginx_target,
        "worker": BuildTarget(name="worker", build_file="docker/worker.Dockerfile", tag="acme/worker"),
    }


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "shipyard.yaml"
    path.write_text(
        "targets:\n"
        "  web:\n"
        "    build_file: docker/web.Dockerfile\n"
        "    tag: acme/web\n"
        "  nginx:\n"
        "    build_file: docker/nginx.Dockerfile\n"
        "    tag: acme/nginx\n"
        "    context: nginx\n"
    )
    return path


@pytest.fixture
def write_scan_file():
    """Write a trivy JSON document to a path."""

    def _write(path, *vulns):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(_trivy_document(*vulns)))
        return path

    return _write


@pytest.fixture
def credentials():
    return RegistryCredentials(username="ci-bot", password="s3cret")


@pytest.fixture
def progress_calls():
    return []


@pytest.fixture
def ctx(progress_calls, credentials):
    return ExecutionContext(
        credentials=credentials,
        on_progress=lambda fraction, message: progress_calls.append((fraction, message)),
    )


@pytest.fixture
def make_finding():
    return _make_finding


@pytest.fixture
def make_result():
    return _make_result


@pytest.fixture
def trivy_vuln():
    return _trivy_vuln
