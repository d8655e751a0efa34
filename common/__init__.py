"""Common utilities for the trivia bot."""
from .config import ConfigError, configure_logger, get_config, load_config

__all__ = ['ConfigError', 'get_config', 'load_config', 'configure_logger']
