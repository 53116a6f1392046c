"""
MinWeaver v0.1.0

Configuration management for MinWeaver.

Author: MinWeaver Development Team
License: MIT
"""

from .schema import (
    DEFAULT_CONFIG,
    default_config,
    load_config,
    apply_overrides,
    save_config_template,
    validate_config,
    check_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "default_config",
    "load_config",
    "apply_overrides",
    "save_config_template",
    "validate_config",
    "check_config",
]
