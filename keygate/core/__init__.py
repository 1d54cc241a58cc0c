"""Core infrastructure: configuration and logging."""

from .config_manager import ConfigManager, KeygateConfig
from .logging_config import setup_logging

__all__ = ["ConfigManager", "KeygateConfig", "setup_logging"]
