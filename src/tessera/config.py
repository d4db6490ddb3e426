"""Runtime configuration and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from tessera.errors import ConfigurationError

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_TRUE = ("1", "true", "yes", "on")


@dataclass
class Config:
    """Framework configuration."""

    breadcrumbs_enabled: bool = True
    max_diagnostics: int = 100
    frame_interval: float = 1 / 30
    task_workers: int = 4
    show_cursor: bool = False
    alternate_screen: bool = True
    log_level: str = "WARNING"
    log_path: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Build a config from ``TESSERA_*`` environment variables."""
        env = os.environ if environ is None else environ
        config = cls()
        try:
            if "TESSERA_BREADCRUMBS" in env:
                config.breadcrumbs_enabled = env["TESSERA_BREADCRUMBS"].lower() in _TRUE
            if "TESSERA_MAX_DIAGNOSTICS" in env:
                config.max_diagnostics = int(env["TESSERA_MAX_DIAGNOSTICS"])
            if "TESSERA_FRAME_INTERVAL" in env:
                config.frame_interval = float(env["TESSERA_FRAME_INTERVAL"])
            if "TESSERA_TASK_WORKERS" in env:
                config.task_workers = int(env["TESSERA_TASK_WORKERS"])
        except ValueError as exc:
            raise ConfigurationError(f"invalid TESSERA_* setting: {exc}") from exc
        config.show_cursor = env.get("TESSERA_SHOW_CURSOR", "").lower() in _TRUE
        if env.get("TESSERA_ALT_SCREEN", "1").lower() not in _TRUE:
            config.alternate_screen = False
        config.log_level = env.get("TESSERA_LOG_LEVEL", config.log_level).upper()
        config.log_path = env.get("TESSERA_LOG_FILE") or config.log_path
        return config


def configure_logging(level: str = "WARNING", path: str | None = None) -> None:
    """Install root logging.

    The terminal owns stdout while the app runs, so records go to *path*
    when given and to stderr otherwise.
    """
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise ConfigurationError(f"unknown log level {level!r}")
    kwargs: dict[str, object] = {"level": numeric, "format": _LOG_FORMAT, "force": True}
    if path:
        kwargs["filename"] = path
    logging.basicConfig(**kwargs)  # type: ignore[arg-type]
