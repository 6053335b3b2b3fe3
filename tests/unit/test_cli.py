"""Unit tests for CLI parsing, log-level override and bootstrap behavior."""

from __future__ import annotations

import logging
from argparse import Namespace

import pytest

from nekoctl.cli import argsWithLogLevel_apply, arguments_parse, logLevelOverride_get
from nekoctl.client.bootstrap import (
    configWithSettings_load,
    loggingWithConfig_setup,
    sessionConfig_build,
)
from nekoctl.client.client_logging import NOISY_LOGGERS, logging_setup
from nekoctl.common.config import ConfigLoader
from nekoctl.common.settings import settings


class TestLogLevelOverride:
    """Tests for CLI log-level precedence."""

    def test_info_overrides_debug_when_both_set(self) -> None:
        """
        `--info` should suppress debug noise when both flags are present.

        Returns:
            None.
        """
        args = Namespace(
            debug=True,
            info=True,
            warning=False,
            error=False,
            critical=False,
        )
        assert logLevelOverride_get(args) == "INFO"

    def test_warning_overrides_info(self) -> None:
        """
        More restrictive levels should take precedence.

        Returns:
            None.
        """
        args = Namespace(
            debug=True,
            info=True,
            warning=True,
            error=False,
            critical=False,
        )
        assert logLevelOverride_get(args) == "WARNING"

    def test_no_flags(self) -> None:
        """
        Without flags the config level is kept.

        Returns:
            None.
        """
        args = arguments_parse([])
        assert logLevelOverride_get(args) is None
        argsWithLogLevel_apply(args, None)
        assert not hasattr(args, "log_level")

    def test_override_applied_to_args(self) -> None:
        """
        A resolved level is stored on the namespace.

        Returns:
            None.
        """
        args = arguments_parse(["--debug"])
        argsWithLogLevel_apply(args, logLevelOverride_get(args))
        assert args.log_level == "DEBUG"


class TestArgumentsParse:
    """Tests for CLI argument parsing."""

    def test_connection_arguments(self) -> None:
        """Connection flags are parsed as given."""
        args = arguments_parse(
            ["--server", "neko.example.com", "--password", "secret", "--name", "Bot", "--control", "--headless"]
        )

        assert args.server == "neko.example.com"
        assert args.password == "secret"
        assert args.name == "Bot"
        assert args.control is True
        assert args.headless is True
        assert args.config is None

    def test_version_exits(self, capsys) -> None:
        """`--version` prints the version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            arguments_parse(["--version"])
        assert exc_info.value.code == 0
        assert "nekoctl" in capsys.readouterr().out


class TestBootstrap:
    """Tests for config/settings/session wiring."""

    def test_config_load_initializes_settings(self, reset_settings, tmp_path) -> None:
        """Loading config applies CLI overrides and initializes settings."""
        config_file = tmp_path / "config.yml"
        config_file.write_text("client:\n  server_address: file.example.com\n")
        args = arguments_parse(["--config", str(config_file), "--name", "Bot"])

        config = configWithSettings_load(args)

        assert settings.config is config
        assert config.client.server_address == "file.example.com"
        assert config.client.display_name == "Bot"

    def test_missing_explicit_config_exits(self, reset_settings, tmp_path, capsys) -> None:
        """An explicit missing config path exits with status 1."""
        args = arguments_parse(["--config", str(tmp_path / "missing.yml")])

        with pytest.raises(SystemExit) as exc_info:
            configWithSettings_load(args)

        assert exc_info.value.code == 1
        assert "Error" in capsys.readouterr().err

    def test_session_config_build(self) -> None:
        """Session parameters come from the client section."""
        config = ConfigLoader.config_parse(
            {"client": {"server_address": "neko.example.com", "password": "pw", "display_name": "Bot"}}
        )
        session_config = sessionConfig_build(config)

        assert session_config.server_address == "neko.example.com"
        assert session_config.password == "pw"
        assert session_config.display_name == "Bot"

    def test_session_config_without_server_exits(self) -> None:
        """A missing server address exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            sessionConfig_build(ConfigLoader.config_parse({}))
        assert exc_info.value.code == 1

    def test_logging_override_wins(self) -> None:
        """CLI log level beats the config level."""
        config = ConfigLoader.config_parse({"logging": {"level": "ERROR"}})
        calls: list[tuple] = []

        loggingWithConfig_setup(Namespace(log_level="DEBUG"), config, lambda *a: calls.append(a))
        loggingWithConfig_setup(Namespace(), config, lambda *a: calls.append(a))

        assert calls[0][0] == "DEBUG"
        assert calls[1][0] == "ERROR"
        assert calls[1][2] is None


class TestLoggingSetup:
    """Tests for client logging setup."""

    def test_noisy_libraries_quieted_above_debug(self) -> None:
        """Transport libraries log at WARNING unless debugging."""
        logging_setup("INFO", "%(asctime)s - %(message)s", None)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

        logging_setup("DEBUG", "%(asctime)s - %(message)s", None)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.DEBUG
