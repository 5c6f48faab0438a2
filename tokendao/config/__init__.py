"""
tokendao Configuration

Loads dao.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    GovernanceSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "DAOConfig",
    "GovernanceSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
