import logging

from fastapi import APIRouter, Depends

from backlog_tracker.loading_state import LoadingState
from backlog_tracker.models import HealthResponse, OperationsResponse
from backlog_tracker.services.deps import get_loading_state

router = APIRouter()
logger = logging.getLogger("backlog_tracker.router.health")


@router.get("/health", response_model=HealthResponse)
def health_check():
    logger.info("Health check endpoint was called.")
    return HealthResponse(status="healthy", message="API is running")


@router.get("/health/operations", response_model=OperationsResponse)
def in_flight_operations(loading: LoadingState = Depends(get_loading_state)):
    """Operations currently in progress, e.g. a running library sync."""
    return OperationsResponse(loading=loading.loading_operations())
