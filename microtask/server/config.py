"""
SOLE RESPONSIBILITY: Layered configuration for the HTTP server, the task database and logging.
Sources, lowest to highest priority: defaults, ~/.microtask/config.json,
./.microtask.json, environment variables.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".microtask"
PROJECT_CONFIG_NAME = ".microtask.json"


def get_app_dir() -> Path:
    """Per-user application directory holding the default database, logs and config."""
    return Path.home() / APP_DIR_NAME


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    port: int = 8080
    host: str = "0.0.0.0"
    reload: bool = False
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class DatabaseConfig:
    """Where the tasks database lives and how long writers wait on a lock."""

    url: Optional[str] = None
    path: Optional[str] = None
    lock_timeout_seconds: int = 30
    echo: bool = False

    def resolve_url(self) -> str:
        """Explicit URL wins, then a file path, then tasks.db in the app directory."""
        if self.url:
            return self.url
        if self.path:
            return f"sqlite:///{self.path}"
        return f"sqlite:///{get_app_dir() / 'tasks.db'}"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    directory: Optional[str] = None
    debug: bool = False
    max_log_file_size_mb: int = 10
    backup_count: int = 5

    def resolve_directory(self) -> Path:
        return Path(self.directory) if self.directory else get_app_dir() / "logs"


# Environment variable -> (section, attribute, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], object]]] = {
    "SERVER_PORT": ("server", "port", int),
    "SERVER_HOST": ("server", "host", str),
    "DATABASE_URL": ("database", "url", str),
    "MICROTASK_DB": ("database", "path", str),
    "LOG_LEVEL": ("logging", "level", str.upper),
    "MICROTASK_LOG_DIR": ("logging", "directory", str),
    "MICROTASK_DEBUG": ("logging", "debug", _as_bool),
}


@dataclass
class Config:
    server: ServerConfig
    database: DatabaseConfig
    logging: LoggingConfig

    @classmethod
    def defaults(cls) -> "Config":
        return cls(server=ServerConfig(), database=DatabaseConfig(), logging=LoggingConfig())

    @classmethod
    def config_files(cls) -> Tuple[Path, Path]:
        """User file, then project file; later files override earlier ones."""
        return get_app_dir() / "config.json", Path.cwd() / PROJECT_CONFIG_NAME

    @classmethod
    def load(cls) -> "Config":
        config = cls.defaults()
        for path in cls.config_files():
            if path.exists():
                config._merge_file(path)
        config._apply_env(os.environ)
        return config

    def _merge_file(self, path: Path):
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")
            return
        self._merge_dict(data)
        logger.info(f"Loaded config from {path}")

    def _merge_dict(self, config_dict: dict):
        """Merge a parsed config file; unknown sections and keys are ignored."""
        for section_name in ("server", "database", "logging"):
            values = config_dict.get(section_name)
            if not isinstance(values, dict):
                continue
            section = getattr(self, section_name)
            for key, value in values.items():
                if hasattr(section, key):
                    setattr(section, key, value)

    def _apply_env(self, environ):
        for name, (section, attribute, parse) in ENV_OVERRIDES.items():
            raw = environ.get(name)
            if not raw:
                continue
            try:
                setattr(getattr(self, section), attribute, parse(raw))
            except ValueError:
                logger.warning(f"Ignoring invalid value for {name}: {raw!r}")

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the configuration as JSON, by default to the user config file."""
        path = path or self.config_files()[0]
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)
        logger.info(f"Saved config to {path}")
        return path


_config: Optional[Config] = None


def get_config() -> Config:
    """Process-wide configuration, loaded on first use."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config() -> Config:
    global _config
    _config = Config.load()
    return _config
