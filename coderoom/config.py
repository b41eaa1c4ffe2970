#!/usr/bin/env python3

import os
import json
import copy
from pathlib import Path

import logging
import sys

import yaml

from .exit_codes import ConfigError, ValidationError

logger = logging.getLogger("coderoom")

LOG_FORMAT = "%(levelname)s: %(message)s"

# Directory names skipped (with their whole subtree) while scanning roots
DEFAULT_IGNORE_DIR_NAMES = [
    '.cache',
    '.cargo',
    '.gradle',
    '.m2',
    '.npm',
    '.rustup',
    '.tox',
    '.venv',
    '__pycache__',
    '_deps',
    'node_modules',
    'target',
    'venv',
]

DEFAULT_COMMIT_INDEX_BRANCHES = 10
DEFAULT_COMMIT_INDEX_COMMITS_PER_BRANCH = 50
MAX_COMMIT_INDEX_BRANCHES = 200
MAX_COMMIT_INDEX_COMMITS_PER_BRANCH = 500


def setup_logging(config=None, stream=None):
    """Configure the root logger from the ``logging`` config section."""
    level_name = 'INFO'
    if config:
        level_name = str(config.get('logging', {}).get('level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(stream or sys.stderr)  # Default to stderr
        ]
    )
    logger.setLevel(level)


def get_data_dir():
    """Directory holding the catalog and the default config file."""
    return Path.home() / '.coderoom'


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. CODEROOM_CONFIG environment variable
    2. ~/.coderoom/config.{yaml,yml,json}
    """
    if 'CODEROOM_CONFIG' in os.environ:
        return Path(os.environ['CODEROOM_CONFIG']).expanduser()

    data_dir = get_data_dir()
    for filename in ['config.yaml', 'config.yml', 'config.json']:
        path = data_dir / filename
        if path.exists():
            return path

    # If no file exists, return default path for saving
    return data_dir / 'config.yaml'


def _read_config_file(config_path):
    with open(config_path, 'r') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        return json.load(f)


def load_config(config_path=None, env_overrides=True):
    """
    Load configuration from file, merged over the defaults.

    With ``env_overrides=False`` the result is exactly what the file says,
    which is what gets written back by save_config.
    """
    config_path = Path(config_path) if config_path else get_config_path()

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read config {config_path}: {e}")
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config {config_path} must contain a mapping")
        config = merge_configs(config, file_config)

    # Apply environment variable overrides
    if env_overrides:
        config = apply_env_overrides(config)

    return config


def save_config(config, config_path=None):
    """Save configuration to file."""
    config_path = Path(config_path) if config_path else get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=True)
            else:
                json.dump(config, f, indent=2)
    except OSError as e:
        raise ConfigError(f"Error saving config to {config_path}: {e}")

    logger.debug(f"Configuration saved to {config_path}")
    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "roots": [],
        "ignore_dir_names": list(DEFAULT_IGNORE_DIR_NAMES),
        "commit_index": {
            "branches": DEFAULT_COMMIT_INDEX_BRANCHES,
            "commits_per_branch": DEFAULT_COMMIT_INDEX_COMMITS_PER_BRANCH,
        },
        "logging": {
            "level": "INFO",
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: CODEROOM_SECTION_KEY
    For example: CODEROOM_COMMIT_INDEX_BRANCHES=20
    """
    env_prefix = "CODEROOM_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        if value.isdigit():
            typed_value = int(value)
        elif value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Longest config key that is a prefix of the remaining parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if matched_key is None:
                break
            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break
            if not isinstance(current_level[matched_key], dict):
                break
            current_level = current_level[matched_key]
            i += best_match_len

    return config


def normalize_root(path):
    """Canonical absolute form of a root directory."""
    return os.path.realpath(os.path.expanduser(str(path)))


def get_roots(config):
    return list(config.get('roots') or [])


def add_root(config, path):
    """Add a root to the config. Returns False if it was already there."""
    root = normalize_root(path)
    roots = get_roots(config)
    if root in roots:
        return False
    roots.append(root)
    config['roots'] = roots
    return True


def remove_root(config, path):
    """Remove a root from the config. Returns False if it was not there."""
    root = normalize_root(path)
    roots = get_roots(config)
    if root not in roots and str(path) not in roots:
        return False
    config['roots'] = [r for r in roots if r not in (root, str(path))]
    return True


def get_ignore_dir_names(config):
    return sorted(set(config.get('ignore_dir_names') or []))


def _validate_ignore_name(name):
    name = (name or '').strip()
    if not name or '/' in name or os.sep in name:
        raise ValidationError(f"Invalid directory name to ignore: {name!r}")
    return name


def add_ignore_dir_name(config, name):
    name = _validate_ignore_name(name)
    names = get_ignore_dir_names(config)
    if name in names:
        return False
    config['ignore_dir_names'] = sorted(names + [name])
    return True


def remove_ignore_dir_name(config, name):
    name = _validate_ignore_name(name)
    names = get_ignore_dir_names(config)
    if name not in names:
        return False
    config['ignore_dir_names'] = [n for n in names if n != name]
    return True


def reset_ignore_dir_names(config):
    config['ignore_dir_names'] = list(DEFAULT_IGNORE_DIR_NAMES)
    return config['ignore_dir_names']


def validate_commit_index_limits(branches, commits_per_branch):
    """Raise ValidationError unless both limits are within their bounds."""
    if not isinstance(branches, int) or isinstance(branches, bool) \
            or not 1 <= branches <= MAX_COMMIT_INDEX_BRANCHES:
        raise ValidationError(
            f"branches must be between 1 and {MAX_COMMIT_INDEX_BRANCHES}, got {branches!r}"
        )
    if not isinstance(commits_per_branch, int) or isinstance(commits_per_branch, bool) \
            or not 1 <= commits_per_branch <= MAX_COMMIT_INDEX_COMMITS_PER_BRANCH:
        raise ValidationError(
            f"commits per branch must be between 1 and {MAX_COMMIT_INDEX_COMMITS_PER_BRANCH}, "
            f"got {commits_per_branch!r}"
        )


def get_commit_index_limits(config):
    """Return the configured (branches, commits_per_branch) window."""
    section = config.get('commit_index') or {}
    branches = section.get('branches', DEFAULT_COMMIT_INDEX_BRANCHES)
    commits = section.get('commits_per_branch', DEFAULT_COMMIT_INDEX_COMMITS_PER_BRANCH)
    try:
        validate_commit_index_limits(branches, commits)
    except ValidationError as e:
        raise ConfigError(f"Invalid commit_index settings: {e}")
    return branches, commits


def set_commit_index_limits(config, branches, commits_per_branch):
    validate_commit_index_limits(branches, commits_per_branch)
    section = config.setdefault('commit_index', {})
    section['branches'] = branches
    section['commits_per_branch'] = commits_per_branch
