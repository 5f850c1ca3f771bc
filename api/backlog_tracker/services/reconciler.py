from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Optional

from backlog_tracker.db_models import Achievement, Game
from backlog_tracker.repository import GameRepository
from backlog_tracker.schemas import CompletionStatus, Platform, SyncResult, SyncStatus
from backlog_tracker.services.errors import PartialSyncFailure, SourceUnavailableError
from backlog_tracker.sources.base import CandidateGame, LibrarySource
from backlog_tracker.utils import utcnow

logger = logging.getLogger("backlog_tracker.service.reconciler")

# Filled from a source only while still empty in the catalog
_METADATA_FIELDS = (
    "description",
    "developer",
    "publisher",
    "release_date",
    "header_image",
    "capsule_image",
    "price_formatted",
)


class Reconciler:
    """Merges the games a source reports into the catalog.

    Games are matched by the source's external id only. Existing rows get
    fresh playtime and last-played values; completion status and any
    metadata already in the catalog are left alone. Nothing is deleted.

    Each game row is committed before its achievements are fetched, so an
    achievement failure reports the candidate as skipped but keeps the row.
    """

    def __init__(
        self,
        repository: GameRepository,
        sync_achievements: bool = True,
        fetch_details: bool = False,
    ) -> None:
        self.repository = repository
        self.sync_achievements = sync_achievements
        self.fetch_details = fetch_details

    def sync(
        self,
        source: LibrarySource,
        account_ref: Optional[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """
        Reconcile every candidate ``source`` reports for ``account_ref``.

        Raises:
            SourceUnavailableError: the candidate list could not be fetched;
                the sync is aborted.
        """
        platform = source.platform
        logger.info(f"Starting {platform.value} sync")

        added = 0
        updated = 0
        failed_ids: list[str] = []
        cancelled = False

        for candidate in source.fetch_owned_games(account_ref):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.info(f"{platform.value} sync cancelled")
                break
            try:
                game, is_new = self._reconcile(source, candidate)
            except Exception as exc:  # noqa: BLE001  pylint: disable=broad-exception-caught
                self.repository.rollback()
                failure = PartialSyncFailure(candidate.external_id, exc)
                logger.warning(f"{platform.value} sync: {failure}")
                failed_ids.append(candidate.external_id)
                continue

            if is_new:
                added += 1
            else:
                updated += 1

            # The game row is already committed; only the achievements are lost here
            try:
                self._sync_achievements(game, source, candidate, account_ref)
            except Exception as exc:  # noqa: BLE001  pylint: disable=broad-exception-caught
                self.repository.rollback()
                failure = PartialSyncFailure(candidate.external_id, exc)
                logger.warning(f"{platform.value} sync: achievements not updated: {failure}")
                failed_ids.append(candidate.external_id)

        if cancelled:
            status = SyncStatus.CANCELLED
        elif failed_ids:
            status = SyncStatus.PARTIAL
        else:
            status = SyncStatus.COMPLETED

        message = (
            f"{platform.value} library sync {status.value}: "
            f"{added} added, {updated} updated, {len(failed_ids)} skipped"
        )
        logger.info(message)
        return SyncResult(
            platform=platform,
            success=True,
            status=status,
            added=added,
            updated=updated,
            skipped=len(failed_ids),
            failed_ids=failed_ids,
            message=message,
        )

    def _reconcile(self, source: LibrarySource, candidate: CandidateGame) -> tuple[Game, bool]:
        """Insert or update one candidate's game row. The bool is True when it was added."""
        existing = self.repository.get_by_external_id(source.platform, candidate.external_id)

        if existing is None:
            game = self.repository.add(self._new_game(source, candidate))
            logger.debug(f"Added {source.platform.value} game {candidate.external_id}")
            return game, True

        if candidate.playtime_minutes is not None:
            existing.playtime_minutes = candidate.playtime_minutes
        if candidate.last_played is not None:
            existing.last_played = candidate.last_played
        self._fill_metadata(existing, candidate)
        return self.repository.update(existing), False

    def _new_game(self, source: LibrarySource, candidate: CandidateGame) -> Game:
        platform = source.platform
        game = Game(
            steam_app_id=candidate.external_id if platform == Platform.STEAM else None,
            epic_game_id=candidate.external_id if platform == Platform.EPIC_GAMES else None,
            name=candidate.name,
            price=candidate.price if candidate.price is not None else Decimal("0"),
            platform=platform.value,
            completion_status=CompletionStatus.NOT_STARTED.value,
            playtime_minutes=candidate.playtime_minutes or 0,
            last_played=candidate.last_played,
            is_owned=True,
        )
        self._fill_metadata(game, candidate)

        genre_names = list(candidate.genres)
        if self.fetch_details:
            try:
                details = source.fetch_game_details(candidate.external_id)
            except SourceUnavailableError as exc:
                logger.warning(f"No details for {candidate.external_id}: {exc}")
                details = None
            if details is not None:
                self._fill_metadata(game, details)
                if details.price is not None and not game.price:
                    game.price = details.price
                genre_names = list(details.genres) + genre_names

        # game_genres is keyed on (game, genre); sources may repeat a name
        for genre_name in dict.fromkeys(genre_names):
            game.genres.append(self.repository.get_or_create_genre(genre_name))
        return game

    @staticmethod
    def _fill_metadata(game: Game, candidate: CandidateGame) -> None:
        for field in _METADATA_FIELDS:
            value = getattr(candidate, field)
            if value and not getattr(game, field):
                setattr(game, field, value)

    def _sync_achievements(
        self,
        game: Game,
        source: LibrarySource,
        candidate: CandidateGame,
        account_ref: Optional[str],
    ) -> None:
        if not (self.sync_achievements and source.supports_achievements):
            return

        known = {achievement.external_id: achievement for achievement in game.achievements}
        now = utcnow()
        for reported in source.fetch_achievements(candidate.external_id, account_ref):
            achievement = known.get(reported.external_id)
            if achievement is None:
                achievement = Achievement(
                    external_id=reported.external_id,
                    created_at=now,
                )
                game.achievements.append(achievement)
                known[reported.external_id] = achievement
            achievement.name = reported.name
            achievement.description = reported.description
            achievement.icon_url = reported.icon_url or achievement.icon_url
            achievement.icon_gray_url = reported.icon_gray_url or achievement.icon_gray_url
            achievement.is_unlocked = reported.is_unlocked
            achievement.unlocked_at = reported.unlocked_at
            achievement.global_percentage = reported.global_percentage
            achievement.is_hidden = reported.is_hidden
            achievement.updated_at = now
        self.repository.update(game)
