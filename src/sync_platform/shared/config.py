"""Application settings (dotenv + env overrides) and logging preset."""

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import logging
import os

from dotenv import load_dotenv
from rich.logging import RichHandler

from sync_platform.shared.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the sync platform."""
    database_url: str = "sqlite:///sync_platform.db"
    message_bus_url: str = "memory://"
    automap_threshold: float = 0.7
    discovery_max_samples: int = 10
    job_error_history: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> "Settings":
        """
        Load settings from the environment.

        Args:
            env: Mapping to read instead of ``os.environ`` (no .env loading then)
            dotenv_path: Explicit .env file; defaults to ``./.env``

        Returns:
            Populated settings
        """
        if env is None:
            load_dotenv(dotenv_path or Path.cwd() / ".env", override=False)
            env = os.environ

        defaults = cls()
        return cls(
            database_url=env.get("SYNC_DATABASE_URL", defaults.database_url),
            message_bus_url=env.get("SYNC_MESSAGE_BUS_URL", defaults.message_bus_url),
            automap_threshold=_parse(env, "SYNC_AUTOMAP_THRESHOLD", float, defaults.automap_threshold),
            discovery_max_samples=_parse(env, "SYNC_DISCOVERY_MAX_SAMPLES", int, defaults.discovery_max_samples),
            job_error_history=_parse(env, "SYNC_JOB_ERROR_HISTORY", int, defaults.job_error_history),
            log_level=env.get("SYNC_LOG_LEVEL", defaults.log_level).upper(),
        )


def _parse(env: Mapping[str, str], key: str, kind, default):
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a {kind.__name__}, got {raw!r}")


def configure_logging(level: str = "INFO") -> None:
    """Install a Rich console handler on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(name)-40s │ %(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )
