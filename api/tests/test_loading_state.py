import pytest

from backlog_tracker.loading_state import LoadingOperations, LoadingState
from backlog_tracker.services.errors import ConflictError


def test_track_marks_and_clears() -> None:
    state = LoadingState()
    with state.track(LoadingOperations.LOADING_GAMES):
        assert state.is_loading(LoadingOperations.LOADING_GAMES)
        assert state.loading_operations() == ["loading_games"]
    assert not state.is_loading(LoadingOperations.LOADING_GAMES)
    assert state.loading_operations() == []


def test_track_clears_on_error() -> None:
    state = LoadingState()
    with pytest.raises(RuntimeError):
        with state.track(LoadingOperations.SYNCING_EPIC_LIBRARY, exclusive=True):
            raise RuntimeError("boom")
    assert not state.is_loading(LoadingOperations.SYNCING_EPIC_LIBRARY)


def test_exclusive_track_rejects_overlap() -> None:
    state = LoadingState()
    with state.track(LoadingOperations.SYNCING_STEAM_LIBRARY, exclusive=True):
        with pytest.raises(ConflictError):
            with state.track(LoadingOperations.SYNCING_STEAM_LIBRARY, exclusive=True):
                pass
        # The rejected attempt must not clear the running one
        assert state.is_loading(LoadingOperations.SYNCING_STEAM_LIBRARY)


def test_set_loading() -> None:
    state = LoadingState()
    state.set_loading("custom", True)
    assert state.is_loading("custom")
    state.set_loading("custom", False)
    assert not state.is_loading("custom")
