"""Configuration management for the targeted estimation libraries."""

from .base import (
    BaseConfiguration,
    ConfigurationManager,
    Environment,
    config_manager,
)
from .targeting_config import TargetedEstimationConfig, get_config

__all__ = [
    "BaseConfiguration",
    "ConfigurationManager",
    "Environment",
    "config_manager",
    "TargetedEstimationConfig",
    "get_config",
]
