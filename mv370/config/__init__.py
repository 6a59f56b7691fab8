"""Configuration management package.

Provides centralized configuration access with defaults, file loading,
and environment variable overrides.
"""

from mv370.config.config_manager import ConfigManager
from mv370.config.config_models import (
    Config,
    GatewayConfig,
    LoggingConfig,
    LogLevel
)

__all__ = [
    'ConfigManager',
    'Config',
    'GatewayConfig',
    'LoggingConfig',
    'LogLevel',
]
