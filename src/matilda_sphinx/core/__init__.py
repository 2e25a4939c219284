"""Core package exports."""

from .config import ConfigLoader, get_config, reset_config
from .logging import setup_logging, shutdown_logging

__all__ = ["ConfigLoader", "get_config", "reset_config", "setup_logging", "shutdown_logging"]
