"""Utility functions and classes."""

from .config import load_config, save_config, merge_configs, Config
from .logging_utils import setup_logging, setup_logging_from_config, get_logger

__all__ = [
    "load_config",
    "save_config",
    "merge_configs",
    "Config",
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
]
