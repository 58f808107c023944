"""
Configuration loader.

App config: reads config.yaml into a frozen dataclass tree.
"""

from config.loader import (
    AppConfig,
    DefaultsConfig,
    JournalConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "AppConfig",
    "DefaultsConfig",
    "JournalConfig",
    "StorageConfig",
    "load_config",
]
