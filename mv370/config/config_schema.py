"""JSON Schema validation for the gateway client configuration."""

from typing import List, Tuple, Dict, Any
import copy

import jsonschema
from jsonschema import Draft7Validator


class ConfigSchema:
    """Configuration schema validator using JSON Schema Draft 7.

    Example:
        >>> is_valid, errors = ConfigSchema.validate_config(config_dict)
        >>> if not is_valid:
        ...     for error in errors:
        ...         print(error)
    """

    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get JSON Schema Draft 7 describing every configuration section."""
        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "MV-370 Gateway Client Configuration",
            "type": "object",
            "properties": {
                "gateway": {
                    "type": "object",
                    "description": "Gateway connection settings",
                    "properties": {
                        "host": {
                            "type": "string",
                            "description": "Gateway address as host or host:port",
                            "minLength": 1
                        },
                        "username": {
                            "type": "string",
                            "description": "Telnet login username"
                        },
                        "password": {
                            "type": "string",
                            "description": "Telnet login password"
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Connect/read/write timeout in seconds",
                            "exclusiveMinimum": 0,
                            "maximum": 300
                        }
                    },
                    "additionalProperties": False
                },
                "logging": {
                    "type": "object",
                    "description": "Diagnostic logging settings",
                    "properties": {
                        "enabled": {"type": "boolean"},
                        "level": {
                            "type": "string",
                            "enum": ConfigSchema.LOG_LEVELS
                        },
                        "log_to_console": {"type": "boolean"},
                        "log_to_file": {"type": "boolean"},
                        "log_file_path": {"type": ["string", "null"]},
                        "max_file_size_mb": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": 1000
                        },
                        "backup_count": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 100
                        }
                    },
                    "additionalProperties": False
                }
            },
            "additionalProperties": False
        }

    @staticmethod
    def validate_config(config: Dict[str, Any], strict: bool = True) -> Tuple[bool, List[str]]:
        """Validate configuration dictionary against schema.

        Args:
            config: Configuration dictionary to validate.
            strict: If True, reject unknown fields.

        Returns:
            Tuple of (is_valid, error_messages).

        Example:
            >>> ConfigSchema.validate_config({"gateway": {"timeout": 5}})
            (True, [])
        """
        schema = ConfigSchema.get_schema()
        if not strict:
            schema = ConfigSchema._make_permissive(schema)

        validator = Draft7Validator(schema)
        errors = [ConfigSchema._format_error(error)
                  for error in validator.iter_errors(config)]

        return len(errors) == 0, errors

    @staticmethod
    def _make_permissive(schema: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of schema with every additionalProperties restriction removed."""
        permissive_schema = copy.deepcopy(schema)

        def remove_additional_properties(obj):
            if isinstance(obj, dict):
                obj.pop("additionalProperties", None)
                for value in obj.values():
                    remove_additional_properties(value)

        remove_additional_properties(permissive_schema)
        return permissive_schema

    @staticmethod
    def _format_error(error: jsonschema.exceptions.ValidationError) -> str:
        """Format validation error as "Section 'x', field 'y': message"."""
        path = list(error.absolute_path)
        if len(path) >= 2:
            return f"Section '{path[0]}', field '{path[1]}': {error.message}"
        if len(path) == 1:
            return f"Section '{path[0]}': {error.message}"
        return error.message
