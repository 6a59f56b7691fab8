"""Configuration manager for the MV-370 gateway client.

Provides singleton access to application configuration with support for
defaults, file loading, and environment variable overrides.
"""

from pathlib import Path
from typing import Optional, Dict, Any, List
from copy import deepcopy
import os

import yaml

from mv370.config.config_models import (
    Config,
    GatewayConfig,
    LoggingConfig,
    LogLevel
)
from mv370.config.defaults import get_default_config
from mv370.config.config_schema import ConfigSchema


class ConfigManager:
    """Singleton configuration manager.

    Layered loading:
    1. Load defaults
    2. Load from YAML file (if one exists)
    3. Apply environment variable overrides
    4. Validate against the JSON schema
    5. Return a frozen Config object
    """

    ENV_PREFIX = "MV370_"

    _instance: Optional['ConfigManager'] = None
    _config: Optional[Config] = None
    _config_source: Dict[str, str] = {}
    _config_path: Optional[Path] = None

    def __init__(self):
        """Private constructor. Use instance() or initialize() class methods."""
        if ConfigManager._instance is not None:
            raise RuntimeError("Use ConfigManager.instance() instead of constructor")

    @classmethod
    def instance(cls) -> 'ConfigManager':
        """Get singleton instance of ConfigManager.

        Raises:
            RuntimeError: If not yet initialized.
        """
        if cls._instance is None:
            raise RuntimeError("ConfigManager not initialized. Call initialize() first.")
        return cls._instance

    @classmethod
    def initialize(cls,
                   config_path: Optional[Path] = None,
                   skip_validation: bool = False) -> 'ConfigManager':
        """Initialize ConfigManager with configuration.

        Args:
            config_path: Optional path to a YAML config file. If None, searches default paths.
            skip_validation: Skip schema validation.

        Returns:
            ConfigManager: Initialized singleton instance.

        Raises:
            FileNotFoundError: An explicit config_path does not exist.
            yaml.YAMLError: The config file is not valid YAML.
            ValueError: The merged configuration fails validation.
        """
        if cls._instance is None:
            cls._instance = cls.__new__(cls)

        instance = cls._instance
        instance._config_source = {}
        instance._config_path = None

        config_dict = get_default_config().to_dict()
        instance._mark_source(config_dict, "default")

        if config_path is None:
            config_path = cls._search_config_paths()
        elif not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        if config_path is not None:
            file_config = cls._load_from_file(config_path)
            config_dict = cls._merge_configs(config_dict, file_config)
            instance._mark_source(file_config, "file")
            instance._config_path = config_path

        env_overrides = cls._apply_env_overrides(config_dict)
        if env_overrides:
            config_dict = cls._merge_configs(config_dict, env_overrides)
            instance._mark_source(env_overrides, "env")

        if not skip_validation:
            is_valid, validation_errors = ConfigSchema.validate_config(config_dict, strict=True)
            if not is_valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(
                    f"  - {error}" for error in validation_errors
                )
                raise ValueError(error_msg)

        instance._config = cls._dict_to_config(config_dict)
        return instance

    @staticmethod
    def _search_config_paths() -> Optional[Path]:
        """Search order: ./mv370.yaml, then ~/.mv370/config.yaml."""
        search_paths = [
            Path("./mv370.yaml"),
            Path.home() / ".mv370" / "config.yaml"
        ]

        for path in search_paths:
            if path.exists() and path.is_file():
                return path

        return None

    @staticmethod
    def _load_from_file(path: Path) -> Dict[str, Any]:
        """Load configuration dictionary from a YAML file."""
        with open(path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        return ConfigManager._normalize(config_dict)

    @staticmethod
    def _normalize(config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Undo YAML typing that the schema would reject.

        An unquoted ``password: 1234`` loads as an int; credentials are
        always strings. Log levels are accepted in any case.
        """
        gateway = config_dict.get('gateway')
        if isinstance(gateway, dict):
            for key in ('username', 'password'):
                if isinstance(gateway.get(key), (int, float)) and not isinstance(gateway[key], bool):
                    gateway[key] = str(gateway[key])

        log_dict = config_dict.get('logging')
        if isinstance(log_dict, dict) and isinstance(log_dict.get('level'), str):
            log_dict['level'] = log_dict['level'].upper()

        return config_dict

    @classmethod
    def _apply_env_overrides(cls, current: Dict[str, Any]) -> Dict[str, Any]:
        """Collect MV370_SECTION_KEY environment overrides.

        Examples:
            MV370_GATEWAY_HOST=10.0.0.5:23
            MV370_GATEWAY_TIMEOUT=5
            MV370_LOGGING_ENABLED=true

        Values are converted to the type of the value they replace, so a
        numeric password stays a string.
        """
        overrides: Dict[str, Dict[str, Any]] = {}

        for env_name, env_value in os.environ.items():
            if not env_name.startswith(cls.ENV_PREFIX):
                continue

            parts = env_name[len(cls.ENV_PREFIX):].lower().split('_', 1)
            if len(parts) != 2:
                continue

            section, key = parts
            existing = current.get(section, {}).get(key)
            overrides.setdefault(section, {})[key] = cls._parse_env_value(env_value, existing)

        return cls._normalize(overrides)

    @staticmethod
    def _parse_env_value(value: str, existing: Any) -> Any:
        """Convert an environment string to the type of ``existing``."""
        if isinstance(existing, bool):
            if value.lower() in ('true', '1', 'yes', 'on'):
                return True
            if value.lower() in ('false', '0', 'no', 'off'):
                return False
            return value
        if isinstance(existing, int):
            try:
                return int(value)
            except ValueError:
                return value
        if isinstance(existing, float):
            try:
                return float(value)
            except ValueError:
                return value
        return value

    @staticmethod
    def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries section by section."""
        merged = deepcopy(base)

        for section, section_values in override.items():
            if isinstance(section_values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(section_values)
            else:
                merged[section] = section_values

        return merged

    def _mark_source(self, config: Dict[str, Any], source: str):
        for section, section_values in config.items():
            if isinstance(section_values, dict):
                for key in section_values.keys():
                    self._config_source[f"{section}.{key}"] = source

    @staticmethod
    def _dict_to_config(config_dict: Dict[str, Any]) -> Config:
        """Convert a validated configuration dictionary to Config."""
        gateway_dict = config_dict.get('gateway', {})
        gateway = GatewayConfig(
            host=gateway_dict.get('host', "192.168.100.251:23"),
            username=gateway_dict.get('username', "voip"),
            password=gateway_dict.get('password', "1234"),
            timeout=float(gateway_dict.get('timeout', 10.0))
        )

        log_dict = config_dict.get('logging', {})
        level = log_dict.get('level', LogLevel.INFO.value)
        logging = LoggingConfig(
            enabled=log_dict.get('enabled', False),
            level=level if isinstance(level, LogLevel) else LogLevel(str(level).upper()),
            log_to_console=log_dict.get('log_to_console', True),
            log_to_file=log_dict.get('log_to_file', False),
            log_file_path=log_dict.get('log_file_path'),
            max_file_size_mb=log_dict.get('max_file_size_mb', 10),
            backup_count=log_dict.get('backup_count', 5)
        )

        return Config(gateway=gateway, logging=logging)

    def get_config(self) -> Config:
        """Get current configuration object.

        Raises:
            RuntimeError: If configuration not loaded.
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config

    @property
    def config_path(self) -> Optional[Path]:
        """Path of the loaded config file, None when running on defaults."""
        return self._config_path

    def validate(self) -> List[str]:
        """Validate current configuration; returns error messages (empty if valid)."""
        if self._config is None:
            return ["Configuration not loaded"]

        _, errors = ConfigSchema.validate_config(self._config.to_dict())
        return errors

    def show_config(self, mask_sensitive: bool = True) -> Dict[str, Any]:
        """Current configuration with the source of every value.

        Example:
            {
                "gateway": {
                    "host": {"value": "10.0.0.5:23", "source": "env"},
                    "password": {"value": "****", "source": "default"}
                }
            }
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")

        config = self._config.mask_sensitive() if mask_sensitive else self._config

        result: Dict[str, Any] = {}
        for section, section_values in config.to_dict().items():
            result[section] = {
                key: {
                    "value": value,
                    "source": self._config_source.get(f"{section}.{key}", "unknown")
                }
                for key, value in section_values.items()
            }

        return result

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._config = None
        cls._config_path = None
        cls._config_source = {}
