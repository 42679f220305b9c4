"""
Shared utilities for the graph loader.
"""

from .config import LoaderConfig, load_config
from .logging import get_logger, setup_logging

__all__ = ["LoaderConfig", "load_config", "get_logger", "setup_logging"]
