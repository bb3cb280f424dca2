"""
bootstrap/config.py - Engine configuration

Configuration is loaded from defaults, then RETROFIT_* environment
variables, then an optional JSON file whose values win over the
environment.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from pathlib import Path
import json
import logging
import os
import sys

logger = logging.getLogger("bootstrap.config")

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


@dataclass
class EngineConfig:
    """Cascade execution settings."""

    # Per-service time budget; None means unbounded
    service_timeout_seconds: Optional[float] = None

    # Hold a per-calculation lock for the whole cascade
    serialize_per_calculation: bool = True

    default_actor: str = "system"
    trigger_log_max_entries: int = 10000

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            service_timeout_seconds=_env_float("RETROFIT_SERVICE_TIMEOUT"),
            serialize_per_calculation=_env_bool("RETROFIT_SERIALIZE", "true"),
            default_actor=os.getenv("RETROFIT_DEFAULT_ACTOR", "system"),
            trigger_log_max_entries=int(os.getenv("RETROFIT_TRIGGER_LOG_MAX", "10000")),
        )


@dataclass
class StorageConfig:
    """Record store settings."""

    backend: str = "memory"                     # memory | json
    data_dir: str = "./storage/calculations"

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            backend=os.getenv("RETROFIT_STORAGE_BACKEND", "memory"),
            data_dir=os.getenv("RETROFIT_DATA_DIR", "./storage/calculations"),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("RETROFIT_LOG_LEVEL", "INFO"),
            format=os.getenv("RETROFIT_LOG_FORMAT", DEFAULT_LOG_FORMAT),
            log_file=os.getenv("RETROFIT_LOG_FILE"),
        )


@dataclass
class RetrofitConfig:
    """Root configuration."""

    environment: str = "development"
    debug: bool = False

    engine: EngineConfig = field(default_factory=EngineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "RetrofitConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("RETROFIT_ENVIRONMENT", "development"),
            debug=_env_bool("RETROFIT_DEBUG", "false"),
            engine=EngineConfig.from_env(),
            storage=StorageConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "RetrofitConfig":
        """Load configuration from a JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "RetrofitConfig":
        config = cls.from_env()

        if "environment" in data:
            config.environment = data["environment"]
        if "debug" in data:
            config.debug = data["debug"]

        for section in ("engine", "storage", "logging"):
            target = getattr(config, section)
            for key, value in data.get(section, {}).items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Ignoring unknown config key: {section}.{key}")

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "debug": self.debug,
            "engine": {
                "service_timeout_seconds": self.engine.service_timeout_seconds,
                "serialize_per_calculation": self.engine.serialize_per_calculation,
                "default_actor": self.engine.default_actor,
                "trigger_log_max_entries": self.engine.trigger_log_max_entries,
            },
            "storage": {
                "backend": self.storage.backend,
                "data_dir": self.storage.data_dir,
            },
            "logging": {
                "level": self.logging.level,
                "log_file": self.logging.log_file,
            },
        }


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Attach console (and optional file) handlers to the root logger."""
    config = config or LoggingConfig()
    log_level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)


# Global config instance
_config: Optional[RetrofitConfig] = None


def load_config(filepath: str = None) -> RetrofitConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        RetrofitConfig instance
    """
    global _config

    if filepath:
        _config = RetrofitConfig.from_file(filepath)
    else:
        default_paths = [
            "./retrofit.json",
            "./config/retrofit.json",
            os.path.expanduser("~/.retrofit/config.json"),
        ]

        for path in default_paths:
            if Path(path).exists():
                logger.info(f"Loading config from: {path}")
                _config = RetrofitConfig.from_file(path)
                return _config

        _config = RetrofitConfig.from_env()

    logger.info(f"Configuration loaded: environment={_config.environment}")
    return _config


def get_config() -> RetrofitConfig:
    """Get current configuration, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the loaded configuration."""
    global _config
    _config = None
