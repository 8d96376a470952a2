"""Configuration management for the Puppy Day notification service."""

from .environment import EnvironmentConfig, is_truthy, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_app_config, load_config
from .models import (
    AppConfig,
    BusinessConfig,
    JobsConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    MockConfig,
    NotificationDefaultsConfig,
    SchedulerConfig,
)
from .validators import CRON_FORMAT_ERROR, is_valid_cron_expression

__all__ = [
    # Loader functions
    "load_config",
    "load_app_config",
    "load_environment_config",
    "is_truthy",
    # Configuration models
    "AppConfig",
    "BusinessConfig",
    "JobsConfig",
    "LoggingConfig",
    "MockConfig",
    "NotificationDefaultsConfig",
    "SchedulerConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Validation
    "CRON_FORMAT_ERROR",
    "is_valid_cron_expression",
    # Exceptions
    "ConfigurationError",
]
