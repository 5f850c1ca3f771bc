import logging
import logging.config
from contextlib import asynccontextmanager
from pathlib import Path

import yaml
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backlog_tracker.cache import QueryCache
from backlog_tracker.config import settings
from backlog_tracker.db import create_schema
from backlog_tracker.exception_handlers import register_exception_handlers, request_id_middleware
from backlog_tracker.loading_state import LoadingState
from backlog_tracker.models import WelcomeResponse
from backlog_tracker.routers import dashboard, games, health
from backlog_tracker.sources import build_sources

# Load logging configuration
log_config_path = Path(__file__).resolve().parent.parent / "logging.yaml"
try:
    with open(log_config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
        logging.config.dictConfig(config)
except FileNotFoundError:
    logging.basicConfig(level=logging.INFO)
except Exception as exc:  # pylint: disable=broad-exception-caught
    logging.basicConfig(level=logging.INFO)
    logging.getLogger(__name__).warning("Failed to load logging.yaml: %s", exc)

logger = logging.getLogger("backlog_tracker.main")


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    if settings.auto_create_schema:
        create_schema()
        logger.info("Database schema ready")
    yield
    for source in fastapi_app.state.sources.values():
        source.close()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Tracks a game backlog synced from Steam and Epic Games",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Process-wide state shared by every request
    fastapi_app.state.query_cache = QueryCache()
    fastapi_app.state.loading_state = LoadingState()
    fastapi_app.state.sources = build_sources(settings)

    # Request ID middleware for tracing
    fastapi_app.middleware("http")(request_id_middleware)

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers (standard error format)
    register_exception_handlers(fastapi_app)

    # Include versioned routers
    fastapi_app.include_router(health.router, prefix="/api/v1")
    fastapi_app.include_router(games.router, prefix="/api/v1")
    fastapi_app.include_router(dashboard.router, prefix="/api/v1")

    @fastapi_app.get("/", response_model=WelcomeResponse)
    def read_root():
        return WelcomeResponse(message=f"Welcome to {settings.app_name}")

    return fastapi_app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
