from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from backlog_tracker.schemas import (
    GameCreate,
    GameDto,
    GameUpdate,
    Platform,
    SyncResult,
)
from backlog_tracker.services.deps import get_game_service
from backlog_tracker.services.game_service import GameService

router = APIRouter(prefix="/games", tags=["games"])

logger = logging.getLogger("backlog_tracker.router.games")


@router.get("", response_model=list[GameDto])
async def list_games(
    force_refresh: bool = Query(False, description="Bypass the query cache"),
    service: GameService = Depends(get_game_service),
) -> list[GameDto]:
    """Every game in the catalog, ordered by id."""
    return service.list_games(force_refresh=force_refresh)


# Static segments are registered before /{game_id} so they are not parsed as ids


@router.get("/search", response_model=list[GameDto])
async def search_games(
    term: str = Query("", description="Matched against name, developer and publisher"),
    service: GameService = Depends(get_game_service),
) -> list[GameDto]:
    return service.search_games(term)


@router.get("/platform/{platform}", response_model=list[GameDto])
async def list_games_by_platform(
    platform: Platform,
    force_refresh: bool = Query(False, description="Bypass the query cache"),
    service: GameService = Depends(get_game_service),
) -> list[GameDto]:
    """Games owned on ``platform``; games owned on both platforms are included."""
    return service.get_games_by_platform(platform, force_refresh=force_refresh)


@router.post("/sync/steam/{steam_user_id}", response_model=SyncResult)
def sync_steam_library(
    steam_user_id: str,
    service: GameService = Depends(get_game_service),
) -> SyncResult:
    logger.info(f"Steam library sync requested for {steam_user_id}")
    return service.sync_source(Platform.STEAM, steam_user_id)


@router.post("/sync/epic", response_model=SyncResult)
def sync_epic_library(
    service: GameService = Depends(get_game_service),
) -> SyncResult:
    logger.info("Epic library sync requested")
    return service.sync_source(Platform.EPIC_GAMES)


@router.get("/{game_id}", response_model=GameDto)
async def get_game(
    game_id: int,
    force_refresh: bool = Query(False, description="Bypass the query cache"),
    service: GameService = Depends(get_game_service),
) -> GameDto:
    return service.get_game(game_id, force_refresh=force_refresh)


@router.post("", response_model=GameDto, status_code=status.HTTP_201_CREATED)
async def create_game(
    game_data: GameCreate,
    service: GameService = Depends(get_game_service),
) -> GameDto:
    """Add a game by hand, e.g. one owned on both platforms."""
    return service.create_game(game_data)


@router.put("/{game_id}", response_model=GameDto)
async def update_game(
    game_id: int,
    game_data: GameUpdate,
    service: GameService = Depends(get_game_service),
) -> GameDto:
    """Update completion status, playtime and last played for a game."""
    return service.update_game(game_id, game_data)


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: int,
    service: GameService = Depends(get_game_service),
) -> Response:
    service.delete_game(game_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
