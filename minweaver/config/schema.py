"""
MinWeaver v0.1.0

Configuration schema for MinWeaver.

Defines all available configuration parameters with defaults and validation.

Author: MinWeaver Development Team
License: MIT
"""

import copy
from typing import Dict, Any, Optional, List
from pathlib import Path
import yaml

from ..errors import ConfigurationError
from ..utils.sequence_utils import MAX_KMER_SIZE, MAX_MINIMIZER_SIZE


# Default configuration values
DEFAULT_CONFIG = {
    # ========================================================================
    # K-mer parameters
    # ========================================================================
    'kmers': {
        'k': None,  # K-mer size, 1..64 (required)
        'm': None,  # Minimizer size, 1..32 and < k (required)
    },

    # ========================================================================
    # Input
    # ========================================================================
    'input': {
        'delimiter': ',',  # Column delimiter of the k-mer count table
    },

    # ========================================================================
    # Staging
    # ========================================================================
    'staging': {
        'backend': 'memory',  # 'memory', 'disk' or 'spill'
        'prefix': None,  # Bucket file prefix (default: private temp directory)
        'spill_threshold': 1_000_000,  # Buffered records before spilling to disk
    },

    # ========================================================================
    # Compaction
    # ========================================================================
    'compaction': {
        'workers': 1,  # Worker processes for bucket compaction
        'strict_branching': False,  # Fail on branching overlap paths
    },

    # ========================================================================
    # Output
    # ========================================================================
    'output': {
        # Logging
        'logging': {
            'level': 'INFO',
            'log_file': None,
        },
    },
}

VALID_BACKENDS = ['memory', 'disk', 'spill']
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def default_config() -> Dict[str, Any]:
    """Return a fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Path to YAML config file (None = use defaults)

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    config = default_config()

    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path) as f:
                user_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}") from e

        if user_config is None:
            return config
        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        # Deep merge user config into defaults
        config = _deep_merge(config, user_config)

    return config


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge command-line overrides into configuration.

    Keys use dotted notation (e.g. 'kmers.k'); None values are ignored so
    unset CLI options keep the file or default value.
    """
    for key, value in overrides.items():
        if value is None:
            continue

        keys = key.split('.')
        target = config
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value

    return config


def save_config_template(output_path: Path, k: int = 31, m: int = 15):
    """
    Save a configuration template to file.

    Args:
        output_path: Output file path
        k: K-mer size written in the template
        m: Minimizer size written in the template
    """
    config = default_config()
    config['kmers']['k'] = k
    config['kmers']['m'] = m

    with open(output_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration dictionary.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    # Validate k-mer sizes
    k = config.get('kmers', {}).get('k')
    m = config.get('kmers', {}).get('m')

    if not _is_int(k):
        errors.append(f"kmers.k must be an integer, got {k!r}")
    elif not 1 <= k <= MAX_KMER_SIZE:
        errors.append(f"kmers.k must be in [1, {MAX_KMER_SIZE}], got {k}")

    if not _is_int(m):
        errors.append(f"kmers.m must be an integer, got {m!r}")
    elif not 1 <= m <= MAX_MINIMIZER_SIZE:
        errors.append(f"kmers.m must be in [1, {MAX_MINIMIZER_SIZE}], got {m}")

    if _is_int(k) and _is_int(m) and m >= k:
        errors.append(f"kmers.m ({m}) must be smaller than kmers.k ({k})")

    # Validate input
    delimiter = config.get('input', {}).get('delimiter')
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        errors.append(f"input.delimiter must be a single character, got {delimiter!r}")

    # Validate staging
    staging = config.get('staging', {})
    if staging.get('backend') not in VALID_BACKENDS:
        errors.append(
            f"staging.backend must be one of {', '.join(VALID_BACKENDS)}, got {staging.get('backend')!r}"
        )
    threshold = staging.get('spill_threshold')
    if not _is_int(threshold) or threshold < 1:
        errors.append(f"staging.spill_threshold must be a positive integer, got {threshold!r}")

    # Validate compaction
    workers = config.get('compaction', {}).get('workers')
    if not _is_int(workers) or workers < 1:
        errors.append(f"compaction.workers must be a positive integer, got {workers!r}")

    # Validate output
    output = config.get('output', {})
    level = output.get('logging', {}).get('level')
    if level not in VALID_LOG_LEVELS:
        errors.append(f"output.logging.level must be one of {', '.join(VALID_LOG_LEVELS)}, got {level!r}")

    return errors


def check_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Raise ConfigurationError listing every problem found by validate_config."""
    errors = validate_config(config)
    if errors:
        raise ConfigurationError("; ".join(errors))
    return config
