#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import copy
import json
import logging
import os
import sys

import yaml
from packaging import version


LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'

# Newest config format this bot understands
SUPPORTED_VERSION = '1.0'

DEFAULT_CONFIG = {
    'version': SUPPORTED_VERSION,
    'log_level': 'info',
    'log_file': None,
    'chat': {
        'url': 'wss://chat2.strims.gg/ws',
        'token_env': 'STRIMS_TOKEN',
    },
    'trivia': {
        'command': '!trivia',
        'round_duration': 20,
        'batch_size': 10,
        'timeout': 10.0,
        'question_type': None,
        'announce_provider_errors': True,
        'emotes': ['POGGERS', 'SOY', 'PepoGood', 'PepoG', 'PepoHmm'],
        'stale_filter': {
            'pattern': r'19[0-9]\d',
            'categories': ['Entertainment: Music'],
        },
    },
    'events': {
        'nats_url': None,
    },
}


class ConfigError(Exception):
    """Configuration file is invalid or incomplete."""
    pass


class RobustFileHandler(logging.FileHandler):
    """FileHandler that gracefully handles flush errors on Windows"""

    def flush(self):
        """Flush the stream, catching OSError on Windows file handles"""
        try:
            super().flush()
        except OSError as e:
            # Windows can fail to flush with "Invalid argument" (EINVAL)
            if e.errno != 22:
                raise


def configure_logger(logger,
                     log_file=None,
                     log_format=None,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    # Create file handler if path string, otherwise stream handler
    if isinstance(log_file, str):
        handler = RobustFileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format or LOG_FORMAT)

    # Get logger by name if string provided
    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def merge_config(defaults, overrides):
    """Recursively merge a loaded config over the defaults

    Args:
        defaults: Default configuration dictionary (not modified)
        overrides: Values loaded from the config file

    Returns:
        New merged dictionary
    """
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file=None):
    """Load configuration from a JSON or YAML file and apply defaults

    Args:
        config_file: Path to the config file, None for defaults only

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If the file is not a mapping or has an unsupported version
    """
    if config_file is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    # Determine file format from extension
    with open(config_file, 'r', encoding='utf-8') as fp:
        if config_file.endswith(('.yaml', '.yml')):
            conf = yaml.safe_load(fp)
        else:
            conf = json.load(fp)

    if conf is None:
        conf = {}
    if not isinstance(conf, dict):
        raise ConfigError(f'{config_file}: top level must be a mapping')

    # Only 1.x configs are understood
    config_version = str(conf.get('version', SUPPORTED_VERSION))
    if version.parse(config_version) >= version.parse('2.0'):
        raise ConfigError(
            f'{config_file}: config version {config_version} is not supported '
            f'(expected {SUPPORTED_VERSION})'
        )

    return merge_config(DEFAULT_CONFIG, conf)


def get_config(argv=None):
    """Load configuration named on the command line and set up logging

    The config file argument is optional. The chat credential is never read
    from the file, only from the environment variable named by
    chat.token_env.

    Args:
        argv: Argument list (defaults to sys.argv)

    Returns:
        Tuple of (conf, kwargs) where:
            conf: Full configuration dictionary
            kwargs: Chat connection parameters extracted from config

    Exits:
        Exits with status 1 on bad arguments, bad config or missing token
    """
    argv = sys.argv if argv is None else argv

    if len(argv) > 2:
        print('usage: %s [config file]' % argv[0], file=sys.stderr)
        sys.exit(1)

    try:
        conf = load_config(argv[1] if len(argv) == 2 else None)
    except (OSError, ValueError, yaml.YAMLError, ConfigError) as e:
        print(f'ERROR: could not load config: {e}', file=sys.stderr)
        sys.exit(1)

    # Parse log level from string to logging constant
    log_level = getattr(logging, str(conf['log_level']).upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    if conf.get('log_file'):
        configure_logger(logging.getLogger(), conf['log_file'], LOG_FORMAT, log_level)

    chat = conf['chat']
    token = os.environ.get(chat['token_env'])
    if not token:
        print(f"ERROR: no chat token provided (set {chat['token_env']})",
              file=sys.stderr)
        sys.exit(1)

    return conf, {
        'url': chat['url'],
        'token': token,
    }
