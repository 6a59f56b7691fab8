"""Configuration data models for the MV-370 gateway client.

All dataclasses are frozen; defaults allow zero-config operation against a
gateway at its factory address.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any


class LogLevel(Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway connection settings."""
    host: str = "192.168.100.251:23"
    username: str = "voip"
    password: str = "1234"
    timeout: float = 10.0  # seconds, applied to connect, read and write


@dataclass(frozen=True)
class LoggingConfig:
    """Diagnostic logging settings."""
    enabled: bool = False
    level: LogLevel = LogLevel.INFO
    log_to_console: bool = True
    log_to_file: bool = False
    log_file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class Config:
    """Complete configuration object with all sections."""
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary (enums as values)."""
        def convert_value(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, list):
                return [convert_value(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert_value(v) for k, v in obj.items()}
            return obj

        return convert_value(asdict(self))

    def mask_sensitive(self) -> 'Config':
        """Return copy with the gateway password masked."""
        password = self.gateway.password
        masked = '*' * len(password) if password else password

        return Config(
            gateway=GatewayConfig(
                host=self.gateway.host,
                username=self.gateway.username,
                password=masked,
                timeout=self.gateway.timeout
            ),
            logging=self.logging
        )
