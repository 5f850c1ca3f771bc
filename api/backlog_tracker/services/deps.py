from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from backlog_tracker.cache import QueryCache
from backlog_tracker.config import settings
from backlog_tracker.db import get_db
from backlog_tracker.loading_state import LoadingState
from backlog_tracker.repository import GameRepository
from backlog_tracker.services.game_service import GameService


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_loading_state(request: Request) -> LoadingState:
    return request.app.state.loading_state


def get_game_service(
    request: Request,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    loading: LoadingState = Depends(get_loading_state),
) -> GameService:
    return GameService(
        GameRepository(db),
        cache=cache,
        loading=loading,
        sources=request.app.state.sources,
        settings=settings,
    )
