"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, apply_env_overrides, require_api_key
from .models import (
    AppConfig,
    BusinessLineConfig,
    DatabaseConfig,
    EmailConfig,
    ExtractionConfig,
    NewRecordSelection,
    QueryConfig,
    SchedulerConfig,
    SourceApiConfig,
)

__all__ = [
    "AppConfig",
    "BusinessLineConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DatabaseConfig",
    "EmailConfig",
    "ExtractionConfig",
    "NewRecordSelection",
    "QueryConfig",
    "SchedulerConfig",
    "SourceApiConfig",
    "apply_env_overrides",
    "require_api_key",
]
