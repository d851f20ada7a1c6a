"""Tests for the command-line entry point."""

import argparse
from unittest.mock import patch

import pytest

from stackpilot.cli import build_parser, build_runner, main
from stackpilot.core.exceptions import ConfigurationError
from stackpilot.core.settings import OrchestratorSettings
from stackpilot.models.config import RunConfig
from stackpilot.models.enums import Mode
from stackpilot.services.collector import LogCollector, NullCollector

MANIFEST_YAML = """
name: hello
stacks:
  - stack: web
    region: eu-west-1
    capacity:
      min: 1
      max: 2
      desired: 1
metrics:
  enabled: true
  storage:
    name: deploy-metrics
"""

FAKE_BACKEND = "tests.fakes:create_backend"


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """No .env, no STACKPILOT_* variables and no global logging changes."""
    monkeypatch.chdir(tmp_path)
    for name in ("STACKPILOT_BACKEND", "STACKPILOT_MANIFEST", "STACKPILOT_AUTO_APPLY"):
        monkeypatch.delenv(name, raising=False)
    with patch("stackpilot.cli.setup_logging") as setup_logging:
        yield setup_logging


@pytest.fixture
def manifest_path(tmp_path):
    path = tmp_path / "stackpilot.yaml"
    path.write_text(MANIFEST_YAML)
    return path


class TestParser:
    def test_deploy_flags(self):
        args = build_parser().parse_args(
            ["--auto-apply", "deploy", "--manifest", "m.yml", "--stack", "web",
             "--timeout", "5", "--force-manifest-capacity"]
        )

        assert args.command == "deploy"
        assert args.auto_apply is True
        assert args.manifest == "m.yml"
        assert args.stack == "web"
        assert args.timeout == 5
        assert args.force_manifest_capacity is True

    def test_delete_has_no_force_capacity(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["delete", "--force-manifest-capacity"])

    def test_update_capacity_flags(self):
        args = build_parser().parse_args(["update", "hello-web", "--desired", "3"])

        assert args.application == "hello-web"
        assert args.desired == 3
        assert args.min is None

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestBuildRunner:
    def test_metrics_collector_follows_manifest(self, manifest_path):
        args = argparse.Namespace(backend=FAKE_BACKEND)
        config = RunConfig(manifest=str(manifest_path))

        runner = build_runner(Mode.DEPLOY, config, args, OrchestratorSettings())

        assert isinstance(runner.collector, LogCollector)
        assert runner.manifest.name == "hello"

    def test_disable_metrics(self, manifest_path):
        args = argparse.Namespace(backend=FAKE_BACKEND)
        config = RunConfig(manifest=str(manifest_path), disable_metrics=True)

        runner = build_runner(Mode.DEPLOY, config, args, OrchestratorSettings())

        assert isinstance(runner.collector, NullCollector)

    def test_update_requires_application(self):
        with pytest.raises(ConfigurationError, match="needs an application name"):
            build_runner(
                Mode.UPDATE, RunConfig(), argparse.Namespace(backend=None), OrchestratorSettings()
            )

    def test_backend_loaded_from_settings(self, monkeypatch):
        monkeypatch.setenv("STACKPILOT_BACKEND", "tests.fakes:create_backend")
        config = RunConfig(application="hello-web")

        runner = build_runner(
            Mode.STATUS, config, argparse.Namespace(backend=None), OrchestratorSettings()
        )

        assert runner.backend is not None

    def test_missing_backend_fails_before_runner_is_built(self, manifest_path):
        config = RunConfig(manifest=str(manifest_path))

        with patch("stackpilot.cli.Runner") as runner_cls:
            with pytest.raises(ConfigurationError, match="no backend configured"):
                build_runner(
                    Mode.DEPLOY, config, argparse.Namespace(backend=None), OrchestratorSettings()
                )

        runner_cls.assert_not_called()


class TestMain:
    def test_deploy_succeeds(self, manifest_path):
        code = main(
            ["--auto-apply", "--backend", "tests.fakes:create_backend",
             "deploy", "--manifest", str(manifest_path)]
        )

        assert code == 0

    def test_missing_manifest_fails(self, tmp_path):
        code = main(["--auto-apply", "deploy", "--manifest", str(tmp_path / "missing.yaml")])

        assert code == 1

    def test_deploy_without_backend_does_not_start(self, manifest_path):
        with patch("stackpilot.cli.Runner") as runner_cls:
            code = main(["--auto-apply", "deploy", "--manifest", str(manifest_path)])

        assert code == 1
        runner_cls.assert_not_called()

    def test_log_level_from_environment(self, isolated, monkeypatch):
        monkeypatch.setenv("STACKPILOT_LOG_LEVEL", "DEBUG")
        monkeypatch.delenv("STACKPILOT_LOG_FILE", raising=False)

        main(["status", "hello-web"])

        isolated.assert_called_once_with("DEBUG", None)

    def test_log_level_flag_wins(self, isolated, monkeypatch):
        monkeypatch.setenv("STACKPILOT_LOG_LEVEL", "DEBUG")
        monkeypatch.delenv("STACKPILOT_LOG_FILE", raising=False)

        main(["--log-level", "WARNING", "status", "hello-web"])

        isolated.assert_called_once_with("WARNING", None)

    def test_status_without_backend_fails(self):
        assert main(["status", "hello-web"]) == 1

    def test_malformed_backend_path_fails(self):
        assert main(["--backend", "not-a-path", "status", "hello-web"]) == 1

    def test_status_of_unknown_application_fails(self):
        assert main(["--backend", "tests.fakes:create_backend", "status", "hello-web"]) == 1
