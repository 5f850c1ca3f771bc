"""Dashboard statistics over a catalog snapshot.

Pure functions: callers load the games, nothing here touches the
database. Playtime hours are truncated, never rounded.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from backlog_tracker.schemas import (
    CompletionStatus,
    DashboardStats,
    GameDto,
    Platform,
    PlatformStats,
)
from backlog_tracker.utils import as_utc

DEFAULT_RECENT_COUNT = 5


def achievement_percentage(unlocked: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return unlocked / total * 100


def minutes_to_hours(minutes: int) -> int:
    return minutes // 60


def recently_played(games: Iterable[GameDto], count: int = DEFAULT_RECENT_COUNT) -> list[GameDto]:
    """Most recent ``last_played`` first; equal timestamps keep ascending id order."""
    played = sorted((g for g in games if g.last_played is not None), key=lambda g: g.id)
    played.sort(key=lambda g: as_utc(g.last_played), reverse=True)
    return played[: max(count, 0)]


def platform_stats(games: Sequence[GameDto]) -> list[PlatformStats]:
    counts: Counter[Platform] = Counter()
    minutes: Counter[Platform] = Counter()
    for game in games:
        counts[game.platform] += 1
        minutes[game.platform] += game.playtime_minutes

    return [
        PlatformStats(
            platform=platform,
            game_count=counts[platform],
            playtime_hours=minutes_to_hours(minutes[platform]),
        )
        for platform in Platform
        if counts[platform]
    ]


def compute_dashboard_stats(
    games: Sequence[GameDto], recent_count: int = DEFAULT_RECENT_COUNT
) -> DashboardStats:
    statuses = Counter(game.completion_status for game in games)

    total_achievements = sum(len(game.achievements) for game in games)
    unlocked_achievements = sum(
        1 for game in games for achievement in game.achievements if achievement.is_unlocked
    )

    # Abandoned and OnHold are part of total_games but not broken out
    return DashboardStats(
        total_games=len(games),
        total_playtime_hours=minutes_to_hours(sum(g.playtime_minutes for g in games)),
        achievement_completion_percentage=achievement_percentage(
            unlocked_achievements, total_achievements
        ),
        completed_games=statuses[CompletionStatus.COMPLETED],
        in_progress_games=statuses[CompletionStatus.IN_PROGRESS],
        not_started_games=statuses[CompletionStatus.NOT_STARTED],
        recently_played=recently_played(games, recent_count),
        platform_stats=platform_stats(games),
    )
