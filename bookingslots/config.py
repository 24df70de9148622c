"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .domain.exceptions import ConfigurationError
from .domain.models import WorkDay, WorkSchedule


class WorkDayConfig(BaseModel):
    """Working hours for one day of the week (0=Monday, 6=Sunday)."""
    day_of_week: int
    start: time = time(9, 0)
    end: time = time(17, 0)
    non_working: bool = False

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if value not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {value}")
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_sexagesimal(cls, value):
        """YAML 1.1 reads an unquoted 17:00 as the base-60 integer 1020."""
        if isinstance(value, int) and not isinstance(value, bool):
            return time(hour=value // 60, minute=value % 60)
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "WorkDayConfig":
        """Ensure a working day opens before it closes."""
        if not self.non_working and self.end <= self.start:
            raise ValueError(f"day {self.day_of_week}: end must be later than start")
        return self

    def to_work_day(self) -> WorkDay:
        return WorkDay(
            day_of_week=self.day_of_week,
            start_time=self.start,
            end_time=self.end,
            is_non_working=self.non_working
        )


def _default_work_days() -> List[WorkDayConfig]:
    # Monday to Friday 09:00 - 17:00
    return [WorkDayConfig(day_of_week=day, non_working=day >= 5) for day in range(7)]


class GoogleSettings(BaseModel):
    """Google Calendar service account settings."""
    credentials_file: Path


class MicrosoftSettings(BaseModel):
    """Microsoft Graph (Azure AD public client) settings."""
    client_id: str
    tenant_id: str

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class MemorySettings(BaseModel):
    """Offline calendar backed by a JSON file of events."""
    events_file: Optional[Path] = None


class AppConfig(BaseModel):
    """Application configuration."""
    provider: Literal["google", "microsoft", "memory"] = "google"
    calendar_id: str = "primary"
    timezone: str = "Pacific/Auckland"
    application_name: str = "bookingslots"
    slot_interval_minutes: int = 15
    same_day_hour_offset: float = 0
    min_booking_minutes: int = 30
    work_days: List[WorkDayConfig] = Field(default_factory=_default_work_days)
    google: Optional[GoogleSettings] = None
    microsoft: Optional[MicrosoftSettings] = None
    memory: MemorySettings = Field(default_factory=MemorySettings)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the time zone identifier resolves."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown time zone: {value!r}") from exc
        return value

    @field_validator("slot_interval_minutes", "min_booking_minutes")
    @classmethod
    def validate_positive_minutes(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("minutes must be greater than zero")
        return value

    @field_validator("same_day_hour_offset")
    @classmethod
    def validate_offset(cls, value: float) -> float:
        if value < 0:
            raise ValueError("same_day_hour_offset cannot be negative")
        return value

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, value: List[WorkDayConfig]) -> List[WorkDayConfig]:
        """Ensure each weekday appears at most once."""
        seen: set[int] = set()
        for work_day in value:
            if work_day.day_of_week in seen:
                raise ValueError(f"Duplicate work day entry for day {work_day.day_of_week}")
            seen.add(work_day.day_of_week)
        return value

    @model_validator(mode="after")
    def validate_provider_settings(self) -> "AppConfig":
        """The selected provider needs its settings block."""
        if self.provider == "google" and self.google is None:
            raise ValueError("provider 'google' requires a 'google' section")
        if self.provider == "microsoft" and self.microsoft is None:
            raise ValueError("provider 'microsoft' requires a 'microsoft' section")
        return self

    def to_schedule(self) -> WorkSchedule:
        """Build the weekly work schedule."""
        return WorkSchedule(days=tuple(work_day.to_work_day() for work_day in self.work_days))

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping at the root level.")

        try:
            config = cls(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {config_path}:\n{exc}") from exc

        config.resolve_paths(config_path.parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """Make relative file paths relative to the config file's directory."""
        if self.memory.events_file is not None and not self.memory.events_file.is_absolute():
            self.memory.events_file = base_dir / self.memory.events_file
        if self.google is not None and not self.google.credentials_file.is_absolute():
            self.google.credentials_file = base_dir / self.google.credentials_file


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        config_path = Path(__file__).parent.parent / "config.yaml"

    return config_path
