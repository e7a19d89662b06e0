"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DATE_PATTERN,
    DispatchSettings,
    FetchSettings,
    GlobalConfig,
    ScheduleSettings,
    ServerSettings,
    SourceKind,
    SourceProfile,
    StorageSettings,
    TelegramSettings,
    Topic,
    default_sources,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DATE_PATTERN",
    "DispatchSettings",
    "FetchSettings",
    "GlobalConfig",
    "ScheduleSettings",
    "ServerSettings",
    "SourceKind",
    "SourceProfile",
    "StorageSettings",
    "TelegramSettings",
    "Topic",
    "default_sources",
]
