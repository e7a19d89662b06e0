"""Pydantic models used across the notice-watcher configuration flow."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DATE_PATTERN = r"\d{2}-\d{2}-\d{4}"


class SourceKind(str, Enum):
    """Monitored page categories."""

    RESULT = "result"
    DATESHEET = "datesheet"
    CIRCULAR = "circular"


class Topic(str, Enum):
    """Subscriber preference keys, one per source kind."""

    RESULTS = "results"
    DATESHEET = "datesheet"
    CIRCULAR = "circular"


class SourceProfile(BaseModel):
    """Per-kind extraction parameters and presentation labels."""

    kind: SourceKind
    url: str
    topic: Topic
    label: str
    listing_label: str
    icon: str = ""
    row_exclusions: list[str] = Field(default_factory=lambda: ["title", "s.no"])
    required_date_pattern: str | None = None
    min_title_length: int = 5

    @field_validator("row_exclusions", mode="before")
    @classmethod
    def _lower_exclusions(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return [str(item).lower() for item in value]

    @field_validator("required_date_pattern")
    @classmethod
    def _validate_pattern(cls, value: str | None) -> str | None:
        if value:
            re.compile(value)
        return value or None

    @model_validator(mode="after")
    def _validate_url(self) -> "SourceProfile":
        if not self.url.startswith(("http://", "https://")):
            raise ValueError(f"Source url must be http(s): {self.url}")
        if self.min_title_length < 0:
            raise ValueError("min_title_length must be >= 0")
        return self


def default_sources() -> dict[SourceKind, SourceProfile]:
    return {
        SourceKind.RESULT: SourceProfile(
            kind=SourceKind.RESULT,
            url="http://ggsipu.ac.in/ExamResults/ExamResultsmain.htm",
            topic=Topic.RESULTS,
            label="Exam Results Update",
            listing_label="Latest Exam Results",
            icon="🎓",
        ),
        SourceKind.DATESHEET: SourceProfile(
            kind=SourceKind.DATESHEET,
            url="http://ipu.ac.in/exam_datesheet.php",
            topic=Topic.DATESHEET,
            label="Datesheet Update",
            listing_label="Latest Datesheets",
            icon="📅",
        ),
        SourceKind.CIRCULAR: SourceProfile(
            kind=SourceKind.CIRCULAR,
            url="http://ipu.ac.in/notices.php",
            topic=Topic.CIRCULAR,
            label="Circular/Notice Update",
            listing_label="Latest Circulars/Notices",
            icon="📢",
            row_exclusions=[
                "title",
                "s.no",
                "notices",
                "about university",
                "acts, statute",
                "university...",
            ],
            required_date_pattern=DATE_PATTERN,
        ),
    }


class FetchSettings(BaseModel):
    """HTTP fetch behaviour for source pages."""

    timeout: float = 30.0
    retries: int = 2
    retry_delay: float = 2.0
    preview_retries: int = 0
    max_titles: int = 10
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    extra_headers: dict[str, str] = Field(
        default_factory=lambda: {
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
        }
    )

    @model_validator(mode="after")
    def _validate_non_negative(self) -> "FetchSettings":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.retries < 0 or self.preview_retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.max_titles < 1:
            raise ValueError("max_titles must be >= 1")
        return self


class DispatchSettings(BaseModel):
    """Fan-out controls for notification delivery."""

    workers: int = 8
    send_timeout: float = 10.0
    preview_items: int = 3
    timezone: str = "Asia/Kolkata"

    @model_validator(mode="after")
    def _validate_bounds(self) -> "DispatchSettings":
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.send_timeout <= 0:
            raise ValueError("send_timeout must be > 0")
        return self


class TelegramSettings(BaseModel):
    """Bot API credentials and endpoints."""

    bot_token: str = ""
    api_base: str = "https://api.telegram.org"
    webhook_domain: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.bot_token)


class StorageSettings(BaseModel):
    """Persistence backend selection."""

    backend: Literal["sqlite", "mongodb"] = "sqlite"
    sqlite_path: Path = Field(default=Path("data/state.db"))
    mongodb_uri: str = ""
    database: str = "ipu_bot"

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_backend(self) -> "StorageSettings":
        if self.backend == "mongodb" and not self.mongodb_uri:
            raise ValueError("mongodb backend requires mongodb_uri")
        return self

    def resolved_sqlite_path(self, base_dir: Path) -> Path:
        if not self.sqlite_path.is_absolute():
            return (base_dir / self.sqlite_path).resolve()
        return self.sqlite_path


class ScheduleSettings(BaseModel):
    """When the detection pass runs."""

    interval_seconds: float | None = 120
    cron: str | None = None
    pass_deadline: float = 240.0

    @model_validator(mode="after")
    def _validate_trigger(self) -> "ScheduleSettings":
        if self.cron is None and self.interval_seconds is None:
            raise ValueError("Schedule requires interval_seconds or cron")
        if self.cron is not None and not isinstance(self.cron, str):
            raise ValueError("Cron schedule requires string expression")
        if self.interval_seconds is not None and self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if self.pass_deadline <= 0:
            raise ValueError("pass_deadline must be > 0")
        return self


class ServerSettings(BaseModel):
    """Inbound HTTP trigger and webhook settings."""

    api_key: str = ""
    trusted_caller_marker: str = "internal-cron-trigger"
    host: str = "0.0.0.0"
    port: int = 3000
    dedup_max_entries: int = 1000
    dedup_ttl_seconds: float = 3600.0


class GlobalConfig(BaseModel):
    """Global controls shared by every component."""

    sources: dict[SourceKind, SourceProfile] = Field(default_factory=default_sources)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @model_validator(mode="after")
    def _validate_sources(self) -> "GlobalConfig":
        for kind, profile in self.sources.items():
            if profile.kind is not kind:
                raise ValueError(f"Source profile kind mismatch: {kind.value} != {profile.kind.value}")
        return self

    def profile(self, kind: SourceKind | str) -> SourceProfile:
        key = SourceKind(kind)
        if key not in self.sources:
            raise KeyError(f"Source not configured: {key.value}")
        return self.sources[key]


__all__ = [
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
