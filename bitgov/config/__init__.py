"""
BitGov Configuration

Loads the [governance] section of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    GovernanceConfig,
    load_config,
)

__all__ = [
    "GovernanceConfig",
    "load_config",
]
