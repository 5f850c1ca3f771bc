from __future__ import annotations

from typing import Callable, Optional

import httpx

from backlog_tracker.config import Settings
from backlog_tracker.resilience import CircuitBreaker, ResiliencePolicy
from backlog_tracker.schemas import Platform
from backlog_tracker.sources.base import (
    CandidateAchievement,
    CandidateGame,
    LibrarySource,
)
from backlog_tracker.sources.epic import EpicLocalSource
from backlog_tracker.sources.steam import SteamSource

__all__ = [
    "CandidateAchievement",
    "CandidateGame",
    "EpicLocalSource",
    "LibrarySource",
    "SteamSource",
    "build_policy",
    "build_sources",
]


def build_policy(
    name: str, settings: Settings, sleep: Optional[Callable[[float], None]] = None
) -> ResiliencePolicy:
    breaker = CircuitBreaker(
        name,
        threshold=settings.circuit_breaker_threshold,
        cooldown_seconds=settings.circuit_breaker_cooldown_seconds,
    )
    return ResiliencePolicy(
        name,
        retry_attempts=settings.retry_attempts,
        backoff_base=settings.retry_backoff_base,
        breaker=breaker,
        sleep=sleep,
    )


def build_sources(
    settings: Settings, http_client: Optional[httpx.Client] = None
) -> dict[Platform, LibrarySource]:
    """One adapter per platform, each behind its own retry/breaker policy."""
    return {
        Platform.STEAM: SteamSource(
            api_key=settings.steam_api_key,
            policy=build_policy("steam", settings),
            client=http_client,
            api_base_url=settings.steam_api_base_url,
            store_base_url=settings.steam_store_base_url,
            timeout=settings.http_timeout_seconds,
        ),
        Platform.EPIC_GAMES: EpicLocalSource(
            settings.epic_manifest_dir, policy=build_policy("epic", settings)
        ),
    }
