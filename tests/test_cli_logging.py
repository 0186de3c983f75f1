"""Tests for CLI global logging configuration."""

from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from curatarr.cli import app
from curatarr.config import Config, ConfigurationError, LoggingConfig

runner = CliRunner()


class TestGlobalLogLevel:
    """Tests for global --log-level flag."""

    @patch("curatarr.cli.configure_logging")
    def test_global_log_level_flag_configures_logging(self, mock_configure: MagicMock) -> None:
        """Global --log-level flag should configure logging before command runs."""
        result = runner.invoke(app, ["--log-level", "debug", "version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("debug")

    @patch("curatarr.cli.configure_logging")
    def test_global_log_level_short_flag(self, mock_configure: MagicMock) -> None:
        """Short -l flag should work as alias for --log-level."""
        result = runner.invoke(app, ["-l", "warning", "version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("warning")

    def test_global_log_level_invalid_exits_with_error(self) -> None:
        """Invalid log level should exit with error."""
        result = runner.invoke(app, ["--log-level", "verbose", "version"])

        assert result.exit_code == 1
        assert "invalid" in result.output.lower()

    @patch("curatarr.cli.configure_logging")
    def test_global_log_level_case_insensitive(self, mock_configure: MagicMock) -> None:
        """Log level should be case insensitive."""
        result = runner.invoke(app, ["--log-level", "DEBUG", "version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("debug")


class TestLogLevelPriority:
    """Tests for log level priority chain: CLI > env > config > default."""

    @patch("curatarr.cli.configure_logging")
    @patch.dict("os.environ", {"CURATARR_LOG_LEVEL": "warning"})
    def test_cli_overrides_env_var(self, mock_configure: MagicMock) -> None:
        """CLI flag should override environment variable."""
        result = runner.invoke(app, ["--log-level", "debug", "version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("debug")

    @patch("curatarr.cli.configure_logging")
    @patch("curatarr.cli.Config.load")
    @patch.dict("os.environ", {"CURATARR_LOG_LEVEL": "error"}, clear=False)
    def test_env_overrides_config(
        self, mock_config_load: MagicMock, mock_configure: MagicMock
    ) -> None:
        """Environment variable should override config file."""
        mock_config_load.return_value = Config(logging=LoggingConfig(level="debug"))

        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("error")

    @patch("curatarr.cli.configure_logging")
    @patch("curatarr.cli.Config.load")
    @patch.dict("os.environ", {}, clear=True)
    def test_config_overrides_default(
        self, mock_config_load: MagicMock, mock_configure: MagicMock
    ) -> None:
        """Config file should override default when no CLI or env."""
        mock_config_load.return_value = Config(logging=LoggingConfig(level="warning"))

        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("warning")

    @patch("curatarr.cli.configure_logging")
    @patch("curatarr.cli.Config.load", side_effect=ConfigurationError("broken"))
    @patch.dict("os.environ", {}, clear=True)
    def test_broken_config_falls_back_to_info(
        self, mock_config_load: MagicMock, mock_configure: MagicMock
    ) -> None:
        """A config file that fails to load should not block logging setup."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with("info")
