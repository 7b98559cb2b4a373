"""Tests for external tool dependency checks."""

from unittest.mock import patch

import pytest

from shipyard_core.deps import DependencyCheck, assert_dependencies, check_dependencies


def _which(available):
    return lambda tool: f"/usr/bin/{tool}" if tool in available else None


def test_check_dependencies():
    with patch("shutil.which", side_effect=_which({"docker"})):
        checks = check_dependencies(["docker", "trivy"])

    assert checks == [
        DependencyCheck(name="docker", available=True, path="/usr/bin/docker"),
        DependencyCheck(name="trivy", available=False, path=None),
    ]


def test_assert_dependencies_passes_when_all_present():
    with patch("shutil.which", side_effect=_which({"docker", "trivy"})):
        assert_dependencies(["docker", "trivy"])


def test_assert_dependencies_names_missing_tools():
    with patch("shutil.which", side_effect=_which(set())):
        with pytest.raises(RuntimeError) as exc_info:
            assert_dependencies(["docker", "trivy"])

    message = str(exc_info.value)
    assert message.startswith("Missing required tools: docker, trivy")
    assert "trivy.dev" in message


def test_describe():
    assert DependencyCheck("docker", True, "/usr/bin/docker").describe() == "docker: /usr/bin/docker"
    assert DependencyCheck("crane", False, None).describe() == "crane: NOT FOUND"
    assert "install:" in DependencyCheck("trivy", False, None).describe()
