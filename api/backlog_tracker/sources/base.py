"""
Base LibrarySource class defining the interface for every platform adapter.

Adding a platform means adding a subclass here and registering it in
``backlog_tracker.sources.build_sources``; the Reconciler only talks to
this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Iterator, Optional

from backlog_tracker.schemas import Platform


@dataclass
class CandidateAchievement:
    """An achievement as reported by a source for one game."""

    external_id: str
    name: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    icon_gray_url: Optional[str] = None
    is_unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    global_percentage: float = 0.0
    is_hidden: bool = False


@dataclass
class CandidateGame:
    """A game as reported by a source, before reconciliation.

    ``playtime_minutes`` and ``last_played`` are ``None`` when the source
    cannot report them, which leaves the catalog values untouched.
    """

    external_id: str
    name: str
    platform: Platform
    playtime_minutes: Optional[int] = None
    last_played: Optional[datetime] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    header_image: Optional[str] = None
    capsule_image: Optional[str] = None
    price: Optional[Decimal] = None
    price_formatted: Optional[str] = None
    genres: list[str] = field(default_factory=list)


class LibrarySource(ABC):
    """A platform that reports the games an account owns."""

    supports_achievements: bool = False

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """The platform every candidate from this source belongs to."""

    @abstractmethod
    def fetch_owned_games(self, account_ref: Optional[str]) -> Iterator[CandidateGame]:
        """
        Yield the games owned by ``account_ref``.

        Raises:
            SourceUnavailableError: the list itself could not be fetched.
        """

    def fetch_achievements(
        self, external_id: str, account_ref: Optional[str]
    ) -> Iterable[CandidateAchievement]:
        return []

    def fetch_game_details(self, external_id: str) -> Optional[CandidateGame]:
        return None

    def close(self) -> None:
        pass
