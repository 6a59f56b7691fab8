"""Default configuration values for zero-config operation."""

from mv370.config.config_models import (
    Config,
    GatewayConfig,
    LoggingConfig,
    LogLevel
)


def get_default_config() -> Config:
    """Get default configuration.

    Default Values:
        - Gateway: factory address 192.168.100.251:23, voip/1234, 10s timeout
        - Logging: disabled; INFO to console when enabled
    """
    return Config(
        gateway=GatewayConfig(
            host="192.168.100.251:23",
            username="voip",
            password="1234",
            timeout=10.0
        ),
        logging=LoggingConfig(
            enabled=False,
            level=LogLevel.INFO,
            log_to_console=True,
            log_to_file=False,
            log_file_path=None,  # ~/.mv370/logs/session_{timestamp}.log when needed
            max_file_size_mb=10,
            backup_count=5
        )
    )
