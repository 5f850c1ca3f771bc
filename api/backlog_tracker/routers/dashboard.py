import logging

from fastapi import APIRouter, Depends, Query

from backlog_tracker.schemas import DashboardStats
from backlog_tracker.services.deps import get_game_service
from backlog_tracker.services.game_service import GameService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

logger = logging.getLogger("backlog_tracker.router.dashboard")


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    force_refresh: bool = Query(False, description="Bypass the query cache"),
    service: GameService = Depends(get_game_service),
) -> DashboardStats:
    """Totals, completion counts, recently played games and per-platform stats."""
    return service.get_dashboard_stats(force_refresh=force_refresh)
