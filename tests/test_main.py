"""Unit tests for the main entry point.

Tests the main() function including:
- Configuration loading with log level priority (CLI > env > config)
- One-off job runs and their exit codes
- Server mode with and without the in-process scheduler
- Error handling
"""

from unittest.mock import MagicMock, patch

import pytest

from app.config.environment import EnvironmentConfig
from app.config.exceptions import ConfigurationError
from app.config.models import AppConfig, LoggingConfig, SchedulerConfig
from app.main import load_runtime_config, main, run_job


def _configs(log_level=None, scheduler_enabled=True):
    app_config = AppConfig(
        logging=LoggingConfig(level="WARNING"),
        scheduler=SchedulerConfig(enabled=scheduler_enabled),
    )
    env_config = EnvironmentConfig(use_mocks=True, log_level=log_level, database_url="sqlite:///:memory:")
    return app_config, env_config


class TestLoadRuntimeConfig:
    """Test suite for load_runtime_config helper."""

    @pytest.mark.parametrize(
        "cli_level,env_level,expected",
        [
            ("DEBUG", "ERROR", "DEBUG"),
            (None, "ERROR", "ERROR"),
            (None, None, "WARNING"),
        ],
    )
    def test_log_level_priority(self, cli_level, env_level, expected):
        with patch("app.main.load_config", return_value=_configs(log_level=env_level)):
            _, env_config = load_runtime_config(None, cli_level)

        assert env_config.log_level == expected

    def test_configuration_error_propagates(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_runtime_config(tmp_path / "missing.yaml", None)


class TestRunJob:
    def _services(self, failed=0):
        services = MagicMock()
        for result in (
            services.runner.run_reminders.return_value,
            services.runner.run_retention.return_value,
            services.retry_processor.run.return_value,
        ):
            result.failed = failed
            result.to_response.return_value = {"success": True}
        return services

    @pytest.mark.parametrize(
        "job,attribute",
        [
            ("reminders", "runner.run_reminders"),
            ("retention", "runner.run_retention"),
            ("retry", "retry_processor.run"),
        ],
    )
    def test_dispatches_to_job(self, job, attribute):
        services = self._services()

        assert run_job(services, job) == 0

        target = services
        for part in attribute.split("."):
            target = getattr(target, part)
        target.assert_called_once_with()

    def test_failures_give_non_zero_exit(self):
        assert run_job(self._services(failed=2), "retry") == 1


class TestMain:
    @patch("app.main.build_services")
    @patch("app.main.init_database")
    @patch("app.main.close_database")
    @patch("app.main.configure_logging")
    @patch("app.main.load_runtime_config")
    def test_run_job_mode(
        self, mock_load_config, mock_configure_logging, mock_close_db, mock_init_db, mock_build_services
    ):
        mock_load_config.return_value = _configs(log_level="INFO")
        services = mock_build_services.return_value
        services.runner.run_reminders.return_value.failed = 0

        with patch("app.main.uvicorn.run") as mock_uvicorn:
            exit_code = main(["--run-job", "reminders"])

        assert exit_code == 0
        mock_init_db.assert_called_once_with("sqlite:///:memory:")
        mock_configure_logging.assert_called_once()
        services.runner.run_reminders.assert_called_once_with()
        mock_close_db.assert_called_once()
        mock_uvicorn.assert_not_called()

    @patch("app.main.build_scheduler")
    @patch("app.main.build_services")
    @patch("app.main.init_database")
    @patch("app.main.close_database")
    @patch("app.main.configure_logging")
    @patch("app.main.load_runtime_config")
    def test_server_mode_with_scheduler(
        self,
        mock_load_config,
        mock_configure_logging,
        mock_close_db,
        mock_init_db,
        mock_build_services,
        mock_build_scheduler,
    ):
        mock_load_config.return_value = _configs(log_level="INFO")

        with patch("app.main.uvicorn.run") as mock_uvicorn, patch("app.api.create_app") as mock_create_app:
            exit_code = main(["--host", "0.0.0.0", "--port", "9000"])

        assert exit_code == 0
        mock_build_scheduler.assert_called_once_with(mock_build_services.return_value)
        mock_create_app.assert_called_once_with(mock_build_services.return_value)
        mock_uvicorn.assert_called_once_with(
            mock_create_app.return_value, host="0.0.0.0", port=9000, log_config=None
        )
        mock_close_db.assert_called_once()

    @pytest.mark.parametrize(
        "argv,scheduler_enabled",
        [
            (["--no-scheduler"], True),
            ([], False),
        ],
    )
    @patch("app.main.build_scheduler")
    @patch("app.main.build_services")
    @patch("app.main.init_database")
    @patch("app.main.close_database")
    @patch("app.main.configure_logging")
    @patch("app.main.load_runtime_config")
    def test_server_mode_without_scheduler(
        self,
        mock_load_config,
        mock_configure_logging,
        mock_close_db,
        mock_init_db,
        mock_build_services,
        mock_build_scheduler,
        argv,
        scheduler_enabled,
    ):
        mock_load_config.return_value = _configs(log_level="INFO", scheduler_enabled=scheduler_enabled)

        with patch("app.main.uvicorn.run"), patch("app.api.create_app"):
            assert main(argv) == 0

        mock_build_scheduler.assert_not_called()

    @patch("app.main.load_runtime_config")
    def test_configuration_error(self, mock_load_config, capsys):
        mock_load_config.side_effect = ConfigurationError("Config file not found: nonexistent.yaml")

        exit_code = main(["--config", "nonexistent.yaml"])

        assert exit_code == 1
        assert "Configuration Error" in capsys.readouterr().err

    @patch("app.main.load_runtime_config")
    def test_keyboard_interrupt(self, mock_load_config):
        mock_load_config.side_effect = KeyboardInterrupt()

        assert main([]) == 0

    @patch("app.main.init_database")
    @patch("app.main.configure_logging")
    @patch("app.main.load_runtime_config")
    def test_fatal_error(self, mock_load_config, mock_configure_logging, mock_init_db, capsys):
        mock_load_config.return_value = _configs(log_level="INFO")
        mock_init_db.side_effect = RuntimeError("disk gone")

        assert main([]) == 1
        assert "Fatal error: disk gone" in capsys.readouterr().err

    @patch("app.main.configure_logging")
    @patch("app.main.load_runtime_config")
    def test_log_level_flag_is_passed_through(self, mock_load_config, mock_configure_logging):
        mock_load_config.side_effect = ConfigurationError("stop here")

        main(["--log-level", "DEBUG"])

        mock_load_config.assert_called_once_with(None, "DEBUG")

    def test_invalid_job_name_exits(self):
        with pytest.raises(SystemExit):
            main(["--run-job", "everything"])
