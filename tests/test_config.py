"""Tests for environment configuration and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tessera.config import Config, configure_logging
from tessera.errors import ConfigurationError


class TestConfigFromEnv:
    def test_defaults(self) -> None:
        config = Config.from_env({})
        assert config == Config()

    def test_reads_variables(self) -> None:
        config = Config.from_env(
            {
                "TESSERA_BREADCRUMBS": "off",
                "TESSERA_MAX_DIAGNOSTICS": "7",
                "TESSERA_FRAME_INTERVAL": "0.5",
                "TESSERA_TASK_WORKERS": "2",
                "TESSERA_SHOW_CURSOR": "yes",
                "TESSERA_ALT_SCREEN": "0",
                "TESSERA_LOG_LEVEL": "debug",
                "TESSERA_LOG_FILE": "/tmp/tessera.log",
            }
        )
        assert config.breadcrumbs_enabled is False
        assert config.max_diagnostics == 7
        assert config.frame_interval == 0.5
        assert config.task_workers == 2
        assert config.show_cursor is True
        assert config.alternate_screen is False
        assert config.log_level == "DEBUG"
        assert config.log_path == "/tmp/tessera.log"

    def test_bad_number(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_env({"TESSERA_MAX_DIAGNOSTICS": "many"})


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_unknown_level(self) -> None:
        with pytest.raises(ConfigurationError):
            configure_logging("chatty")

    def test_file_target(self, tmp_path: Path) -> None:
        path = tmp_path / "app.log"
        configure_logging("info", str(path))
        logging.getLogger("tessera.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello file" in path.read_text()
        assert logging.getLogger().level == logging.INFO
