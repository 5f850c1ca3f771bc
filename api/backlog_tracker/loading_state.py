from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from backlog_tracker.services.errors import ConflictError

logger = logging.getLogger("backlog_tracker.loading_state")


class LoadingOperations:
    LOADING_GAMES = "loading_games"
    LOADING_DASHBOARD = "loading_dashboard"
    LOADING_GAME_DETAILS = "loading_game_details"
    SYNCING_STEAM_LIBRARY = "syncing_steam_library"
    SYNCING_EPIC_LIBRARY = "syncing_epic_library"
    CREATING_GAME = "creating_game"
    UPDATING_GAME = "updating_game"
    DELETING_GAME = "deleting_game"


class LoadingState:
    """Tracks which operations are in flight, keyed by operation name."""

    def __init__(self) -> None:
        self._loading: dict[str, bool] = {}
        self._lock = threading.Lock()

    def is_loading(self, operation_key: str) -> bool:
        with self._lock:
            return self._loading.get(operation_key, False)

    def loading_operations(self) -> list[str]:
        with self._lock:
            return sorted(key for key, value in self._loading.items() if value)

    def set_loading(self, operation_key: str, is_loading: bool) -> None:
        with self._lock:
            if is_loading:
                self._loading[operation_key] = True
            else:
                self._loading.pop(operation_key, None)
        logger.debug("Loading state changed: %s = %s", operation_key, is_loading)

    @contextmanager
    def track(self, operation_key: str, exclusive: bool = False) -> Iterator[None]:
        """Mark ``operation_key`` as loading for the duration of the block.

        With ``exclusive=True`` a second concurrent entry raises ConflictError
        instead of overlapping the first one.
        """
        with self._lock:
            if exclusive and self._loading.get(operation_key):
                raise ConflictError(f"Operation already in progress: {operation_key}")
            self._loading[operation_key] = True
        logger.debug("Loading state changed: %s = True", operation_key)
        try:
            yield
        finally:
            self.set_loading(operation_key, False)
