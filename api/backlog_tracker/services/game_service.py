from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, TypeVar

from sqlalchemy.exc import IntegrityError

from backlog_tracker.cache import CacheKeys, QueryCache
from backlog_tracker.config import Settings
from backlog_tracker.db_models import Game, GameTag
from backlog_tracker.loading_state import LoadingOperations, LoadingState
from backlog_tracker.repository import GameRepository
from backlog_tracker.schemas import (
    AchievementDto,
    CompletionStatus,
    DashboardStats,
    GameCreate,
    GameDto,
    GameUpdate,
    GenreDto,
    Platform,
    SyncResult,
)
from backlog_tracker.services.aggregator import achievement_percentage, compute_dashboard_stats
from backlog_tracker.services.errors import (
    ConflictError,
    NotFoundError,
    ServiceValidationError,
)
from backlog_tracker.services.reconciler import Reconciler
from backlog_tracker.sources.base import LibrarySource

logger = logging.getLogger("backlog_tracker.service.games")

T = TypeVar("T")

_SYNC_OPERATIONS = {
    Platform.STEAM: LoadingOperations.SYNCING_STEAM_LIBRARY,
    Platform.EPIC_GAMES: LoadingOperations.SYNCING_EPIC_LIBRARY,
}


def to_game_dto(game: Game) -> GameDto:
    unlocked = sum(1 for a in game.achievements if a.is_unlocked)
    return GameDto(
        id=game.id,
        steam_app_id=game.steam_app_id,
        epic_game_id=game.epic_game_id,
        name=game.name,
        description=game.description,
        developer=game.developer,
        publisher=game.publisher,
        release_date=game.release_date,
        header_image=game.header_image,
        capsule_image=game.capsule_image,
        price=game.price,
        price_formatted=game.price_formatted,
        playtime_minutes=game.playtime_minutes,
        last_played=game.last_played,
        is_owned=game.is_owned,
        platform=Platform(game.platform),
        completion_status=CompletionStatus(game.completion_status),
        genres=[GenreDto(id=g.id, name=g.name, description=g.description) for g in game.genres],
        achievements=[
            AchievementDto(
                id=a.id,
                external_id=a.external_id,
                name=a.name,
                description=a.description,
                icon_url=a.icon_url,
                icon_gray_url=a.icon_gray_url,
                is_unlocked=a.is_unlocked,
                unlocked_at=a.unlocked_at,
                global_percentage=a.global_percentage,
                is_hidden=a.is_hidden,
            )
            for a in game.achievements
        ],
        tags=[gt.tag.name for gt in game.game_tags],
        achievement_completion_percentage=achievement_percentage(
            unlocked, len(game.achievements)
        ),
        created_at=game.created_at,
        updated_at=game.updated_at,
    )


class GameService:
    """Client-facing catalog operations with read-through caching.

    Reads go through the shared QueryCache; every write and every sync
    invalidates the list, dashboard and platform entries before returning.
    """

    def __init__(
        self,
        repository: GameRepository,
        cache: QueryCache,
        loading: LoadingState,
        sources: Mapping[Platform, LibrarySource],
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.loading = loading
        self.sources = sources
        self.settings = settings
        self.reconciler = Reconciler(
            repository,
            sync_achievements=settings.sync_achievements,
            fetch_details=settings.sync_fetch_details,
        )

    # ----- cache plumbing -----

    def _cached(
        self, key: str, ttl_minutes: float, loader: Callable[[], T], force_refresh: bool
    ) -> T:
        generation = None
        try:
            # Captured before loading so a write landing mid-load discards this value
            generation = self.cache.generation
            if not force_refresh:
                value, hit = self.cache.get(key)
                if hit:
                    return value
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)

        value = loader()
        if generation is not None:
            try:
                self.cache.set(key, value, ttl_minutes * 60, generation=generation)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Cache write failed for %s: %s", key, exc)
        return value

    def _invalidate_catalog(self, game_id: Optional[int] = None, all_games: bool = False) -> None:
        keys: list[Any] = [CacheKeys.ALL_GAMES, CacheKeys.DASHBOARD_STATS]
        if game_id is not None:
            keys.append(CacheKeys.game(game_id))
        try:
            self.cache.invalidate(*keys)
            self.cache.invalidate_prefix(CacheKeys.PLATFORM_PREFIX)
            if all_games:
                self.cache.invalidate_prefix(CacheKeys.GAME_PREFIX)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # The write is already committed; report it rather than fail the request
            logger.warning("Cache invalidation failed, entries may be stale until TTL: %s", exc)

    # ----- reads -----

    def list_games(self, force_refresh: bool = False) -> list[GameDto]:
        def load() -> list[GameDto]:
            with self.loading.track(LoadingOperations.LOADING_GAMES):
                return [to_game_dto(game) for game in self.repository.get_all()]

        return self._cached(
            CacheKeys.ALL_GAMES,
            self.settings.cache_ttl_games_list_minutes,
            load,
            force_refresh,
        )

    def get_game(self, game_id: int, force_refresh: bool = False) -> GameDto:
        def load() -> GameDto:
            with self.loading.track(LoadingOperations.LOADING_GAME_DETAILS):
                game = self.repository.get_by_id(game_id)
                if game is None:
                    raise NotFoundError(f"Game with ID {game_id} not found")
                return to_game_dto(game)

        return self._cached(
            CacheKeys.game(game_id),
            self.settings.cache_ttl_game_details_minutes,
            load,
            force_refresh,
        )

    def get_games_by_platform(
        self, platform: Platform, force_refresh: bool = False
    ) -> list[GameDto]:
        def load() -> list[GameDto]:
            with self.loading.track(LoadingOperations.LOADING_GAMES):
                return [to_game_dto(g) for g in self.repository.get_by_platform(platform)]

        return self._cached(
            CacheKeys.platform_games(platform.value),
            self.settings.cache_ttl_games_list_minutes,
            load,
            force_refresh,
        )

    def search_games(self, term: Optional[str]) -> list[GameDto]:
        # Never cached: the key space is every possible search term
        term = (term or "").strip()
        if not term:
            raise ServiceValidationError("Search term is required")
        logger.info(f"Searching games for '{term}'")
        return [to_game_dto(game) for game in self.repository.search(term)]

    def get_dashboard_stats(self, force_refresh: bool = False) -> DashboardStats:
        def load() -> DashboardStats:
            with self.loading.track(LoadingOperations.LOADING_DASHBOARD):
                games = [to_game_dto(game) for game in self.repository.get_all()]
                return compute_dashboard_stats(games, self.settings.recently_played_count)

        return self._cached(
            CacheKeys.DASHBOARD_STATS,
            self.settings.cache_ttl_dashboard_minutes,
            load,
            force_refresh,
        )

    # ----- writes -----

    def create_game(self, data: GameCreate) -> GameDto:
        with self.loading.track(LoadingOperations.CREATING_GAME):
            if data.steam_app_id and self.repository.get_by_external_id(
                Platform.STEAM, data.steam_app_id
            ):
                raise ConflictError(f"A game with Steam app id {data.steam_app_id} already exists")
            if data.epic_game_id and self.repository.get_by_external_id(
                Platform.EPIC_GAMES, data.epic_game_id
            ):
                raise ConflictError(f"A game with Epic id {data.epic_game_id} already exists")

            game = Game(
                steam_app_id=data.steam_app_id,
                epic_game_id=data.epic_game_id,
                name=data.name,
                description=data.description,
                developer=data.developer,
                publisher=data.publisher,
                release_date=data.release_date,
                header_image=data.header_image,
                capsule_image=data.capsule_image,
                price=data.price,
                price_formatted=data.price_formatted,
                platform=data.platform.value,
                completion_status=CompletionStatus.NOT_STARTED.value,
                playtime_minutes=0,
                is_owned=True,
            )
            try:
                for genre_name in dict.fromkeys(data.genres):
                    game.genres.append(self.repository.get_or_create_genre(genre_name))
                for tag_name in dict.fromkeys(data.tags):
                    game.game_tags.append(GameTag(tag=self.repository.get_or_create_tag(tag_name)))
                game = self.repository.add(game)
            except IntegrityError as exc:
                self.repository.rollback()
                raise ConflictError("Game already exists in the catalog") from exc

            self._invalidate_catalog()
            logger.info(f"Created game {game.id} ({game.name})")
            return to_game_dto(game)

    def update_game(self, game_id: int, data: GameUpdate) -> GameDto:
        if data.id != game_id:
            raise ServiceValidationError("ID mismatch")

        with self.loading.track(LoadingOperations.UPDATING_GAME):
            game = self.repository.get_by_id(game_id)
            if game is None:
                raise NotFoundError(f"Game with ID {game_id} not found")

            game.completion_status = data.completion_status.value
            game.playtime_minutes = data.playtime_minutes
            game.last_played = data.last_played
            game = self.repository.update(game)

            self._invalidate_catalog(game_id)
            return to_game_dto(game)

    def delete_game(self, game_id: int) -> None:
        with self.loading.track(LoadingOperations.DELETING_GAME):
            if not self.repository.delete(game_id):
                raise NotFoundError(f"Game with ID {game_id} not found")
            self._invalidate_catalog(game_id)
            logger.info(f"Deleted game {game_id}")

    def sync_source(
        self,
        platform: Platform,
        account_ref: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        source = self.sources.get(platform)
        if source is None:
            raise ServiceValidationError(f"No library source for platform {platform.value}")

        with self.loading.track(_SYNC_OPERATIONS[platform], exclusive=True):
            try:
                return self.reconciler.sync(source, account_ref, cancel_event)
            finally:
                # A sync may touch any game, so detail entries go too
                self._invalidate_catalog(all_games=True)
