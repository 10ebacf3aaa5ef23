"""Parent settings, daily usage and sync status models."""

from datetime import datetime
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TimeLimitOption(IntEnum):
    """Allowed daily time limits, in minutes."""

    FIVE_MINUTES = 5
    TEN_MINUTES = 10
    FIFTEEN_MINUTES = 15
    TWENTY_MINUTES = 20
    THIRTY_MINUTES = 30
    FORTY_FIVE_MINUTES = 45
    ONE_HOUR = 60

    @property
    def display_name(self) -> str:
        if self == TimeLimitOption.ONE_HOUR:
            return "1 hour"
        return f"{self.value} minutes"


DEFAULT_TIME_LIMIT = TimeLimitOption.THIRTY_MINUTES


class ParentSettings(BaseModel):
    """App-wide settings controlled by the parent.

    The PIN itself lives in the credential store, never here.
    """

    model_config = ConfigDict(frozen=True)

    require_pin: bool = False
    sound_enabled: bool = True
    haptics_enabled: bool = True
    time_limit_enabled: bool = False
    daily_time_limit_minutes: int = DEFAULT_TIME_LIMIT
    last_sync_at: datetime | None = None

    @field_validator("daily_time_limit_minutes")
    @classmethod
    def _allowed_limit(cls, value: int) -> int:
        try:
            return int(TimeLimitOption(value))
        except ValueError:
            allowed = ", ".join(str(o.value) for o in TimeLimitOption)
            raise ValueError(
                f"time limit must be one of {allowed} minutes, got {value}"
            ) from None

    @property
    def limit_seconds(self) -> int:
        return self.daily_time_limit_minutes * 60


class DailyUsage(BaseModel):
    """Seconds of app use on one calendar day."""

    model_config = ConfigDict(frozen=True)

    day: str
    seconds: int = Field(default=0, ge=0)


class SyncState(StrEnum):
    """Durable-store sync lifecycle states."""

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class SyncStatus(BaseModel):
    """Outcome of the most recent write to the durable store."""

    model_config = ConfigDict(frozen=True)

    state: SyncState = SyncState.IDLE
    at: datetime | None = None
    message: str | None = None

    @classmethod
    def synced(cls, at: datetime) -> "SyncStatus":
        return cls(state=SyncState.SYNCED, at=at)

    @classmethod
    def error(cls, message: str) -> "SyncStatus":
        return cls(state=SyncState.ERROR, message=message)

    @property
    def description(self) -> str:
        if self.state == SyncState.SYNCED and self.at is not None:
            return f"Synced {self.at.isoformat(timespec='seconds')}"
        if self.state == SyncState.ERROR:
            return f"Sync error: {self.message}"
        if self.state == SyncState.SYNCING:
            return "Syncing..."
        return "Not synced"
