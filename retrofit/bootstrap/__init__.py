"""
bootstrap/ - Configuration and logging setup.
"""

from .config import (
    RetrofitConfig,
    EngineConfig,
    StorageConfig,
    LoggingConfig,
    configure_logging,
    load_config,
    get_config,
    reset_config,
)

__all__ = [
    "RetrofitConfig",
    "EngineConfig",
    "StorageConfig",
    "LoggingConfig",
    "configure_logging",
    "load_config",
    "get_config",
    "reset_config",
]
