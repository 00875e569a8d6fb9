#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import toml
import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("p2index")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. P2INDEX_CONFIG environment variable (used even if the file does
       not exist yet, so the first save lands there)
    2. ~/.p2index/ directory
    """
    if 'P2INDEX_CONFIG' in os.environ:
        return Path(os.environ['P2INDEX_CONFIG']).expanduser()

    p2index_dir = Path.home() / '.p2index'
    for filename in CONFIG_FILENAMES:
        path = p2index_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path for saving
    return p2index_dir / 'config.json'


class ConfigLoadError(Exception):
    """Configuration file exists but could not be read."""


def load_config(strict=False):
    """Load configuration from file.

    Args:
        strict: Raise ConfigLoadError for an unreadable file instead of
            logging it and falling back to the defaults
    """
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
            if file_config:
                config = merge_configs(config, file_config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            if strict:
                raise ConfigLoadError(f"Error loading config from {config_path}: {e}") from e
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def _read_config_file(config_path):
    suffix = config_path.suffix.lower()
    if suffix in ['.toml']:
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ['.yaml', '.yml']:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f)
    # Default to JSON format
    with open(config_path, 'r') as f:
        return json.load(f)


def save_config(config):
    """Save configuration to file, in the format its suffix names."""
    config_path = get_config_path()

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.suffix.lower() in ['.toml']:
        # tomllib is read-only
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif config_path.suffix.lower() in ['.yaml', '.yml']:
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    else:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.debug(f"Configuration saved to {config_path}")
    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "aggregation": {
            "index_root": ".meta/p2",
            "artifacts_suffix": "-p2artifacts.xml",
            "metadata_suffix": "-p2metadata.xml",
            "artifact_extension": ".jar"
        },
        # repository id -> {"path": ..., "aggregate": bool, plus any
        # [aggregation] key overridden for that repository}
        "repositories": {},
        "watch": {
            "interval_seconds": 5
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        }
    }


def configure_logging(config, debug=False):
    """Apply the [logging] section to the p2index logger."""
    settings = config.get("logging", {})
    level = "DEBUG" if debug else str(settings.get("level", "INFO")).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    fmt = settings.get("format")
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: P2INDEX_SECTION_SUBSECTION_KEY
    For example: P2INDEX_WATCH_INTERVAL_SECONDS=30
    """
    env_prefix = "P2INDEX_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.lower().split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config
