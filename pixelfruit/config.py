"""
Configuration loading for PixelFruit.

Settings come from a YAML file layered over built-in defaults. String
values may reference environment variables as ``${NAME}``.
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

PathLike = Union[str, Path]


def _expand_env_vars(node: Any) -> Any:
    """Substitute ``${NAME}`` references throughout a parsed YAML tree."""
    if isinstance(node, dict):
        return {key: _expand_env_vars(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand_env_vars(item) for item in node]
    if not isinstance(node, str):
        return node

    # Unset variables are left as written
    expanded = ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), node)
    if expanded == node or not expanded.strip():
        return expanded
    # "${CACHE_SIZE}" should come back as an int, "${FLAG}" as a bool
    return yaml.safe_load(expanded)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[PathLike] = None) -> Dict[str, Any]:
    """
    Read engine settings.

    A missing or unreadable file is not fatal: the defaults are returned
    and the problem is logged.

    Args:
        config_path: YAML file to read; the packaged config.yaml if None

    Returns:
        The file's values merged over ``get_default_config()``
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"No config file at {path}, falling back to defaults")
        return get_default_config()

    try:
        with path.open('r') as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Could not read config {path}: {e}")
        return get_default_config()

    if not isinstance(raw, dict):
        logger.error(f"Config {path} must contain a mapping, got {type(raw).__name__}")
        return get_default_config()

    logger.info(f"Loaded configuration from {path}")
    return _deep_merge(get_default_config(), _expand_env_vars(raw))


def get_default_config() -> Dict[str, Any]:
    """Built-in settings; a fresh dictionary on every call."""
    return {
        'cache': {
            'max_size': 5,
            'ttl_seconds': 300,
            'enabled': True,
        },
        'progressive': {
            'enabled': True,
            'initial_quality': 0.3,
            'target_quality': 1.0,
            'quality_steps': 3,
            'step_delay': 0.05,
        },
        'histogram': {
            'sample_size': 1000,
        },
        'worker': {
            'thread_name_prefix': 'PixelFruit-Worker',
        },
        'replace': {
            'default_tolerance': 60,
            'default_mix_ratio': 1.0,
        },
        'presets': {},
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        },
    }


def save_config(config: Dict[str, Any], config_path: PathLike) -> bool:
    """Write ``config`` as YAML; returns False if the write failed."""
    try:
        with Path(config_path).open('w') as f:
            yaml.safe_dump(config, f, default_flow_style=False, indent=2, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Could not write config {config_path}: {e}")
        return False
    logger.info(f"Saved configuration to {config_path}")
    return True


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Look up a nested value by dotted path, e.g. ``'cache.max_size'``.

    Returns ``default`` when any segment is missing or not a mapping.
    """
    node: Any = config
    for segment in key_path.split('.'):
        if not isinstance(node, dict) or segment not in node:
            return default
        node = node[segment]
    return node


def update_config_value(config: Dict[str, Any], key_path: str, value: Any) -> None:
    """Set a nested value by dotted path, creating intermediate mappings."""
    *parents, leaf = key_path.split('.')
    node = config
    for segment in parents:
        node = node.setdefault(segment, {})
    node[leaf] = value
