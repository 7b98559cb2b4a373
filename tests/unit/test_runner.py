"""Tests for the CLI runner: argparse wiring, config loading and exit codes."""

import argparse
from pathlib import Path
from unittest.mock import patch

import pytest

from shipyard_cli.runner import (
    add_params_to_parser,
    detect_subcommand,
    load_config,
    run_plugin,
)
from shipyard_core.plugin import ResultStatus, ToolParam, ToolResult


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep run_plugin from reconfiguring the root logger under pytest."""
    with patch("shipyard_cli.runner.configure_logging"):
        yield


class TestAddParams:
    def test_types_and_defaults(self, sample_tool_params):
        parser = argparse.ArgumentParser()
        add_params_to_parser(parser, sample_tool_params)

        args = vars(parser.parse_args(["--targets", "web,nginx", "--build-timeout", "60"]))

        assert args == {"targets": "web,nginx", "build_timeout": 60, "parallel": False, "cache": True}

    def test_boolean_negation(self, sample_tool_params):
        parser = argparse.ArgumentParser()
        add_params_to_parser(parser, sample_tool_params)

        args = parser.parse_args(["--targets", "all", "--no-cache", "--parallel"])

        assert args.cache is False
        assert args.parallel is True

    def test_required(self, sample_tool_params):
        parser = argparse.ArgumentParser()
        add_params_to_parser(parser, sample_tool_params)
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_choices_enforced(self):
        parser = argparse.ArgumentParser()
        add_params_to_parser(
            parser,
            [ToolParam(name="policy", description="p", default="fail-build", choices=["fail-build", "warn-only"])],
        )
        with pytest.raises(SystemExit):
            parser.parse_args(["--policy", "ignore"])

    def test_path_type(self):
        parser = argparse.ArgumentParser()
        add_params_to_parser(parser, [ToolParam(name="catalog", description="c", type="path")])
        assert parser.parse_args(["--catalog", "ci/shipyard.yaml"]).catalog == Path("ci/shipyard.yaml")


def test_detect_subcommand():
    command = ToolParam(name="command", description="c", required=True, choices=["run", "scan"])
    assert detect_subcommand([ToolParam(name="ref", description="r"), command]) is command
    assert detect_subcommand([ToolParam(name="command", description="c")]) is None


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "config.yaml") == {}

    def test_valid_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("registry: ghcr.io\ncatalog_file: ci/shipyard.yaml\n")
        assert load_config(path) == {"registry": "ghcr.io", "catalog_file": "ci/shipyard.yaml"}

    def test_invalid_yaml_ignored(self, tmp_path, caplog):
        path = tmp_path / "config.yaml"
        path.write_text("registry: [oops\n")
        assert load_config(path) == {}
        assert "Ignoring" in caplog.text

    def test_non_mapping_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        assert load_config(path) == {}


class TestRunPlugin:
    @pytest.mark.parametrize(
        "status,code",
        [
            (ResultStatus.SUCCESS, 0),
            (ResultStatus.FAILURE, 1),
            (ResultStatus.PARTIAL, 2),
            (ResultStatus.CANCELLED, 130),
        ],
    )
    def test_exit_codes(self, mock_plugin, status, code):
        mock_plugin.run = lambda args, ctx: ToolResult(status=status, summary="done")
        with patch("shipyard_cli.runner.load_config", return_value={}):
            assert run_plugin(mock_plugin, {"image": "acme/web:v1"}) == code

    def test_prints_summary_and_artifacts(self, mock_plugin, capsys):
        mock_plugin.run = lambda args, ctx: ToolResult(
            status=ResultStatus.PARTIAL,
            summary="UNSTABLE: 3 HIGH/CRITICAL finding(s) in web",
            artifacts={"summary": "trivy-reports/trivy-summary.html"},
        )
        with patch("shipyard_cli.runner.load_config", return_value={}):
            run_plugin(mock_plugin, {"image": "acme/web:v1"})

        out = capsys.readouterr().out
        assert "UNSTABLE: 3 HIGH/CRITICAL finding(s) in web" in out
        assert "summary: trivy-reports/trivy-summary.html" in out

    def test_config_passed_to_plugin(self, mock_plugin):
        seen = {}

        def run(args, ctx):
            seen["config"] = ctx.config
            return ToolResult(status=ResultStatus.SUCCESS, summary="ok")

        mock_plugin.run = run
        with patch("shipyard_cli.runner.load_config", return_value={"registry": "ghcr.io"}):
            run_plugin(mock_plugin, {"image": "acme/web:v1"})

        assert seen["config"] == {"registry": "ghcr.io"}

    def test_unexpected_exception(self, mock_plugin, capsys):
        def boom(args, ctx):
            raise ValueError("bad things")

        mock_plugin.run = boom
        with patch("shipyard_cli.runner.load_config", return_value={}):
            assert run_plugin(mock_plugin, {"image": "acme/web:v1"}) == 1
        assert "Error: bad things" in capsys.readouterr().err

    def test_keyboard_interrupt(self, mock_plugin):
        def interrupted(args, ctx):
            raise KeyboardInterrupt

        mock_plugin.run = interrupted
        with patch("shipyard_cli.runner.load_config", return_value={}):
            assert run_plugin(mock_plugin, {"image": "acme/web:v1"}) == 130

    def test_requires_auth_without_credentials(self, mock_plugin, monkeypatch, capsys):
        monkeypatch.delenv("SHIPYARD_REGISTRY_USER", raising=False)
        monkeypatch.delenv("SHIPYARD_REGISTRY_PASSWORD", raising=False)
        mock_plugin.requires_auth = True

        assert run_plugin(mock_plugin, {"image": "acme/web:v1"}) == 1
        assert "SHIPYARD_REGISTRY_USER" in capsys.readouterr().err

    def test_requires_auth_passes_credentials(self, mock_plugin, monkeypatch):
        monkeypatch.setenv("SHIPYARD_REGISTRY_USER", "ci-bot")
        monkeypatch.setenv("SHIPYARD_REGISTRY_PASSWORD", "hunter2")
        mock_plugin.requires_auth = True
        seen = {}

        def run(args, ctx):
            seen["user"] = ctx.credentials.username
            return ToolResult(status=ResultStatus.SUCCESS, summary="ok")

        mock_plugin.run = run
        with patch("shipyard_cli.runner.load_config", return_value={}):
            run_plugin(mock_plugin, {"image": "acme/web:v1"})

        assert seen["user"] == "ci-bot"
