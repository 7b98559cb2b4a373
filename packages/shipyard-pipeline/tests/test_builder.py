"""Tests for the image build runner."""

import subprocess
import threading
import time
from unittest.mock import Mock, patch

import pytest

from shipyard_pipeline.builder import BuildRunner
from shipyard_pipeline.exceptions import BuildError


class TestBuildCommand:
    def test_command_shape(self, web_target, tmp_path):
        runner = BuildRunner(log_dir=tmp_path)
        cmd = runner.build_command(web_target, "acme/web:release-1.8", "release-1.8")

        assert cmd == [
            "docker", "build",
            "-f", "docker/web.Dockerfile",
            "--build-arg", "ROLE=web",
            "--build-arg", "VERSION=release-1.8",
            "-t", "acme/web:release-1.8",
            ".",
        ]

    def test_no_cache(self, web_target, tmp_path):
        cmd = BuildRunner(use_cache=False, log_dir=tmp_path).build_command(web_target, "acme/web:v1", "v1")
        assert "--no-cache" in cmd
        assert cmd[-1] == "."

    def test_arguments_are_not_escaped(self, tmp_path):
        from shipyard_pipeline.models import BuildTarget

        target = BuildTarget(name="odd name", build_file="dir with space/Dockerfile", tag="acme/odd")
        cmd = BuildRunner(log_dir=tmp_path).build_command(target, "acme/odd:v1", "v1")

        assert "dir with space/Dockerfile" in cmd
        assert "ROLE=odd name" in cmd

    def test_registry_prefix(self, web_target):
        assert web_target.image_ref("v1", "registry.example.com/") == "registry.example.com/acme/web:v1"


class TestBuildOne:
    def test_success(self, web_target, tmp_path):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            outcome = BuildRunner(log_dir=tmp_path).build_one(web_target, "v1")

        assert outcome.success
        assert outcome.image == "acme/web:v1"
        assert outcome.log_path == tmp_path / "build-web.log"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["timeout"] == 1800
        assert kwargs["stderr"] == subprocess.STDOUT
        assert "shell" not in kwargs

    def test_failure(self, web_target, tmp_path):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=2)
            outcome = BuildRunner(log_dir=tmp_path).build_one(web_target, "v1")

        assert not outcome.success
        assert outcome.returncode == 2
        assert not outcome.timed_out

    def test_timeout(self, web_target, tmp_path):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("docker", 5)):
            outcome = BuildRunner(timeout=5, log_dir=tmp_path).build_one(web_target, "v1")

        assert not outcome.success
        assert outcome.timed_out

    def test_missing_runtime(self, web_target, tmp_path):
        with patch("subprocess.run", side_effect=FileNotFoundError("docker")):
            outcome = BuildRunner(log_dir=tmp_path).build_one(web_target, "v1")

        assert not outcome.success
        assert "not found" in outcome.error

    def test_unwritable_log_dir(self, web_target, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.write_text("not a directory")

        with patch("subprocess.run") as mock_run:
            outcome = BuildRunner(log_dir=log_dir).build_one(web_target, "v1")

        assert not outcome.success
        assert "cannot write build log" in outcome.error
        mock_run.assert_not_called()


class TestBuildAll:
    def test_serial_builds_in_order(self, web_target, nginx_target, tmp_path):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            outcomes = BuildRunner(log_dir=tmp_path).build_all([web_target, nginx_target], "release-1.8")

        assert [o.image for o in outcomes] == ["acme/web:release-1.8", "acme/nginx:release-1.8"]
        assert mock_run.call_count == 2

    def test_serial_aborts_on_first_failure(self, web_target, nginx_target, tmp_path):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=1)
            with pytest.raises(BuildError) as exc_info:
                BuildRunner(log_dir=tmp_path).build_all([web_target, nginx_target], "v1")

        assert exc_info.value.failed_targets == ["web"]
        assert mock_run.call_count == 1

    def test_serial_log_dir_error_is_build_error(self, web_target, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.write_text("not a directory")

        with patch("subprocess.run"):
            with pytest.raises(BuildError) as exc_info:
                BuildRunner(log_dir=log_dir).build_all([web_target], "v1")

        assert exc_info.value.failed_targets == ["web"]

    def test_parallel_waits_for_all_builds(self, catalog, tmp_path):
        """One failing build does not cancel its siblings."""
        targets = list(catalog.values())

        def fake_run(cmd, **kwargs):
            role = next(arg for arg in cmd if arg.startswith("ROLE="))
            return Mock(returncode=1 if role == "ROLE=web" else 0)

        with patch("subprocess.run", side_effect=fake_run) as mock_run:
            with pytest.raises(BuildError) as exc_info:
                BuildRunner(parallel=True, log_dir=tmp_path).build_all(targets, "v1")

        assert mock_run.call_count == 3
        assert exc_info.value.failed_targets == ["web"]

    def test_parallel_runs_concurrently(self, catalog, tmp_path):
        active = []
        peak = []
        lock = threading.Lock()

        def fake_run(cmd, **kwargs):
            with lock:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.05)
            with lock:
                active.pop()
            return Mock(returncode=0)

        with patch("subprocess.run", side_effect=fake_run):
            outcomes = BuildRunner(parallel=True, log_dir=tmp_path).build_all(list(catalog.values()), "v1")

        assert max(peak) > 1
        assert [o.target.name for o in outcomes] == ["web", "nginx", "worker"]

    def test_parallel_distinct_log_files(self, catalog, tmp_path):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            outcomes = BuildRunner(parallel=True, log_dir=tmp_path).build_all(list(catalog.values()), "v1")

        log_paths = [o.log_path for o in outcomes]
        assert len(set(log_paths)) == len(log_paths)

    def test_max_workers_one_is_sequential(self, catalog, tmp_path):
        active = []
        peak = []

        def fake_run(cmd, **kwargs):
            active.append(1)
            peak.append(len(active))
            time.sleep(0.01)
            active.pop()
            return Mock(returncode=0)

        with patch("subprocess.run", side_effect=fake_run):
            BuildRunner(parallel=True, max_workers=1, log_dir=tmp_path).build_all(list(catalog.values()), "v1")

        assert max(peak) == 1
