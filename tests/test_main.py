"""Unit tests for the main entry point.

Tests the main() function including:
- Configuration loading with log level priority (CLI > env > config)
- Translation of CLI flags into a request body
- Exit code handling
- Error handling
- One end-to-end run against a file database
"""

import json
from datetime import date
from unittest.mock import patch

import pytest

from notification_engine.config.environment import EnvironmentConfig
from notification_engine.config.exceptions import ConfigurationError
from notification_engine.config.models import AppConfig
from notification_engine.main import build_parser, build_request_body, load_runtime_config, main
from notification_engine.persistence import close_database, init_database
from tests.helpers import seed_event, seed_guardian


class TestLoadRuntimeConfig:
    """Test suite for load_runtime_config helper."""

    def _load(self, env_level, override, file_level="WARNING"):
        app_config = AppConfig.model_validate({"logging": {"level": file_level}})
        env_config = EnvironmentConfig(log_level=env_level)
        with patch("notification_engine.main.load_config", return_value=(app_config, env_config)):
            return load_runtime_config(None, override)

    def test_cli_override_wins(self):
        _, env_config = self._load("INFO", "DEBUG")
        assert env_config.log_level == "DEBUG"

    def test_environment_beats_config_file(self):
        _, env_config = self._load("ERROR", None)
        assert env_config.log_level == "ERROR"

    def test_config_file_is_fallback(self):
        _, env_config = self._load(None, None)
        assert env_config.log_level == "WARNING"

    def test_configuration_error_propagates(self):
        with patch(
            "notification_engine.main.load_config",
            side_effect=ConfigurationError("Configuration file not found"),
        ):
            with pytest.raises(ConfigurationError):
                load_runtime_config(None, None)


class TestBuildRequestBody:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert build_request_body(args) == {"mode": "batch"}

    def test_all_flags(self):
        args = build_parser().parse_args(
            [
                "--institution-id", "I1",
                "--reference-id", "att-1",
                "--reference-id", "att-2",
                "--event-type", "attendance_absent",
                "--day", "2024-05-01",
                "--mode", "realtime",
            ]
        )
        assert build_request_body(args) == {
            "mode": "realtime",
            "institution_id": "I1",
            "reference_ids": ["att-1", "att-2"],
            "event_types": ["attendance_absent"],
            "day": "2024-05-01",
        }

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--mode", "weekly"])


@pytest.fixture
def patched_runtime():
    """Patch every collaborator of main() that touches the outside world."""
    app_config = AppConfig()
    env_config = EnvironmentConfig(log_level="INFO", database_url="sqlite:///:memory:")
    with patch(
        "notification_engine.main.load_config", return_value=(app_config, env_config)
    ) as mock_load, patch("notification_engine.main.configure_logging"), patch(
        "notification_engine.main.init_database"
    ) as mock_init, patch(
        "notification_engine.main.close_database"
    ) as mock_close, patch(
        "notification_engine.main.DispatchPipeline"
    ) as mock_pipeline_cls, patch(
        "notification_engine.main.handle_request"
    ) as mock_handle:
        yield {
            "load": mock_load,
            "init": mock_init,
            "close": mock_close,
            "pipeline": mock_pipeline_cls.from_config.return_value,
            "handle": mock_handle,
        }


class TestMain:
    """Test suite for main()."""

    def test_successful_run_exits_zero(self, patched_runtime, capsys):
        patched_runtime["handle"].return_value = {"success": True, "total": 0}

        exit_code = main(["--institution-id", "I1"])

        assert exit_code == 0
        patched_runtime["init"].assert_called_once_with("sqlite:///:memory:")
        body, pipeline = patched_runtime["handle"].call_args[0]
        assert body == {"mode": "batch", "institution_id": "I1"}
        assert pipeline is patched_runtime["pipeline"]
        assert json.loads(capsys.readouterr().out) == {"success": True, "total": 0}

    def test_failed_run_exits_one(self, patched_runtime):
        patched_runtime["handle"].return_value = {"success": False, "error": "fetch failed"}

        assert main([]) == 1

    def test_resources_closed(self, patched_runtime):
        patched_runtime["handle"].return_value = {"success": True}

        main([])

        patched_runtime["pipeline"].close.assert_called_once()
        patched_runtime["close"].assert_called_once()

    def test_configuration_error(self, patched_runtime, capsys):
        patched_runtime["load"].side_effect = ConfigurationError("Configuration file not found")

        assert main([]) == 1
        assert "Configuration Error" in capsys.readouterr().err
        patched_runtime["init"].assert_not_called()
        patched_runtime["close"].assert_called_once()

    def test_unexpected_error(self, patched_runtime, capsys):
        patched_runtime["handle"].side_effect = RuntimeError("boom")

        assert main([]) == 1
        assert "Fatal error: boom" in capsys.readouterr().err
        patched_runtime["pipeline"].close.assert_called_once()

    def test_keyboard_interrupt(self, patched_runtime):
        patched_runtime["handle"].side_effect = KeyboardInterrupt()

        assert main([]) == 1


class TestMainEndToEnd:
    """Runs main() against a real SQLite file with only the in-app channel configured."""

    @pytest.fixture
    def env(self, monkeypatch, tmp_path):
        for name in (
            "LOG_LEVEL",
            "SMS_GATEWAY_TOKEN",
            "SMTP_HOST",
            "SMTP_PORT",
            "SMTP_USER",
            "SMTP_PASS",
            "EMAIL_FROM_ADDRESS",
            "EMAIL_FROM_NAME",
        ):
            monkeypatch.delenv(name, raising=False)
        database_url = f"sqlite:///{tmp_path / 'notifications.db'}"
        monkeypatch.setenv("DATABASE_URL", database_url)

        config_file = tmp_path / "config.yaml"
        config_file.write_text("dispatch:\n  event_types: [birthday]\n")

        init_database(database_url)
        seed_guardian("G1", "S1")
        seed_event("birthday", "bd-S1", "S1", date(2024, 5, 1), student_name="Amina", school_name="Hill School")
        close_database()
        return config_file

    def test_birthday_delivered_in_app(self, env, capsys):
        with patch("notification_engine.main.configure_logging"):
            exit_code = main(["--config", str(env), "--day", "2024-05-01"])

        summary = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert summary["success"] is True
        assert summary["total"] == 1
        assert summary["sent"]["in_app"] == 1
        assert summary["sent"]["sms"] == 0
        assert summary["records_written"] == 1

    def test_second_run_is_deduplicated(self, env, capsys):
        with patch("notification_engine.main.configure_logging"):
            main(["--config", str(env), "--day", "2024-05-01"])
            capsys.readouterr()
            exit_code = main(["--config", str(env), "--day", "2024-05-01"])

        summary = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert summary["sent"]["in_app"] == 0
        assert summary["outcomes"]["skipped"] == 1
        assert summary["records_written"] == 0
