from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from backlog_tracker.utils import format_datetime


# ===== Enums =====


class Platform(str, Enum):
    STEAM = "Steam"
    EPIC_GAMES = "EpicGames"
    BOTH = "Both"


class CompletionStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"
    ON_HOLD = "OnHold"


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


# ===== Core DTOs =====


class GenreDto(BaseModel):
    id: int
    name: str
    description: Optional[str] = None


class AchievementDto(BaseModel):
    id: int
    external_id: str
    name: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    icon_gray_url: Optional[str] = None
    is_unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    global_percentage: float = 0.0
    is_hidden: bool = False

    @field_serializer("unlocked_at", when_used="json")
    def _serialize_unlocked_at(self, value: Optional[datetime]) -> Optional[str]:
        return format_datetime(value)


class GameDto(BaseModel):
    id: int
    steam_app_id: Optional[str] = None
    epic_game_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    release_date: Optional[datetime] = None
    header_image: Optional[str] = None
    capsule_image: Optional[str] = None
    price: Decimal = Decimal("0")
    price_formatted: Optional[str] = None
    playtime_minutes: int = 0
    last_played: Optional[datetime] = None
    is_owned: bool = True
    platform: Platform
    completion_status: CompletionStatus
    genres: list[GenreDto] = Field(default_factory=list)
    achievements: list[AchievementDto] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    achievement_completion_percentage: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer(
        "release_date", "last_played", "created_at", "updated_at", when_used="json"
    )
    def _serialize_datetimes(self, value: Optional[datetime]) -> Optional[str]:
        return format_datetime(value)


class GameCreate(BaseModel):
    steam_app_id: Optional[str] = Field(None, description="Steam application ID")
    epic_game_id: Optional[str] = Field(None, description="Epic catalog item ID")
    name: str = Field(..., min_length=1, description="Game title")
    description: Optional[str] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    release_date: Optional[datetime] = None
    header_image: Optional[str] = None
    capsule_image: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    price_formatted: Optional[str] = None
    platform: Platform = Field(..., description="Platform the game is owned on")
    genres: list[str] = Field(default_factory=list, description="Genre names")
    tags: list[str] = Field(default_factory=list, description="Tag names")

    @model_validator(mode="after")
    def _require_external_id(self) -> "GameCreate":
        if not self.steam_app_id and not self.epic_game_id:
            raise ValueError("Either steam_app_id or epic_game_id must be provided")
        return self


class GameUpdate(BaseModel):
    """User-editable fields. Source metadata cannot be changed here."""

    id: int = Field(..., description="Must match the game id in the path")
    completion_status: CompletionStatus
    playtime_minutes: int = Field(..., ge=0)
    last_played: Optional[datetime] = None


# ===== Dashboard =====


class PlatformStats(BaseModel):
    platform: Platform
    game_count: int
    playtime_hours: int


class DashboardStats(BaseModel):
    total_games: int
    total_playtime_hours: int
    achievement_completion_percentage: float
    completed_games: int
    in_progress_games: int
    not_started_games: int
    recently_played: list[GameDto]
    platform_stats: list[PlatformStats]


# ===== Sync =====


class SyncResult(BaseModel):
    platform: Platform
    success: bool
    status: SyncStatus
    added: int = 0
    updated: int = 0
    skipped: int = 0
    failed_ids: list[str] = Field(default_factory=list)
    message: str
