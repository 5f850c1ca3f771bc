import json
import os
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from backlog_tracker.config import Settings
from backlog_tracker.resilience import ResiliencePolicy
from backlog_tracker.schemas import Platform
from backlog_tracker.services.errors import ServiceValidationError, SourceUnavailableError
from backlog_tracker.sources import EpicLocalSource, SteamSource, build_sources
from backlog_tracker.sources.steam import STEAM_IMAGE_BASE_URL

OWNED_GAMES = {
    "response": {
        "game_count": 2,
        "games": [
            {"appid": 440, "name": "Team Fortress 2", "playtime_forever": 180, "rtime_last_played": 1700000000},
            {"appid": 620, "name": "Portal 2", "playtime_forever": 0, "rtime_last_played": 0},
        ],
    }
}

PLAYER_ACHIEVEMENTS = {
    "playerstats": {
        "success": True,
        "achievements": [
            {"apiname": "TF_FIRST", "achieved": 1, "unlocktime": 1690000000, "name": "First Blood"},
            {"apiname": "TF_SECOND", "achieved": 0, "unlocktime": 0, "name": "Second"},
        ],
    }
}

GLOBAL_PERCENTAGES = {
    "achievementpercentages": {
        "achievements": [{"name": "TF_FIRST", "percent": 62.5}, {"name": "TF_SECOND", "percent": "3.1"}]
    }
}


def _policy(sleeps: list[float] | None = None) -> ResiliencePolicy:
    return ResiliencePolicy("steam", retry_attempts=2, sleep=(sleeps if sleeps is not None else []).append)


def _steam(handler, api_key: str | None = "key", sleeps: list[float] | None = None) -> SteamSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SteamSource(api_key=api_key, policy=_policy(sleeps), client=client)


def test_steam_owned_games_are_mapped_to_candidates() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=OWNED_GAMES)

    candidates = list(_steam(handler).fetch_owned_games("76561197960287930"))

    assert [c.external_id for c in candidates] == ["440", "620"]
    tf2 = candidates[0]
    assert tf2.platform is Platform.STEAM
    assert tf2.playtime_minutes == 180
    assert tf2.last_played is not None and tf2.last_played.tzinfo is not None
    assert tf2.header_image == f"{STEAM_IMAGE_BASE_URL}440/header.jpg"
    assert candidates[1].last_played is None

    url = seen[0].url
    assert url.path == "/IPlayerService/GetOwnedGames/v0001/"
    assert url.params["steamid"] == "76561197960287930"
    assert url.params["include_appinfo"] == "true"
    assert url.params["include_played_free_games"] == "true"


def test_steam_requires_api_key_and_account() -> None:
    source = _steam(lambda request: httpx.Response(200, json=OWNED_GAMES), api_key=None)
    with pytest.raises(ServiceValidationError):
        source.fetch_owned_games("123")
    with pytest.raises(ServiceValidationError):
        _steam(lambda request: httpx.Response(200)).fetch_owned_games("")


def test_steam_retries_then_gives_up() -> None:
    calls = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(502)

    with pytest.raises(SourceUnavailableError):
        list(_steam(handler, sleeps=sleeps).fetch_owned_games("123"))
    assert len(calls) == 3
    assert sleeps == [2.0, 4.0]


def test_steam_recovers_from_a_transient_error() -> None:
    responses = iter([httpx.Response(503), httpx.Response(200, json=OWNED_GAMES)])
    candidates = list(_steam(lambda request: next(responses)).fetch_owned_games("123"))
    assert len(candidates) == 2


def test_steam_achievements_include_global_percentages() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "GetPlayerAchievements" in request.url.path:
            assert request.url.params["appid"] == "440"
            return httpx.Response(200, json=PLAYER_ACHIEVEMENTS)
        if "GetGlobalAchievementPercentagesForApp" in request.url.path:
            return httpx.Response(200, json=GLOBAL_PERCENTAGES)
        return httpx.Response(500)

    achievements = _steam(handler).fetch_achievements("440", "123")

    assert [(a.external_id, a.is_unlocked, a.global_percentage) for a in achievements] == [
        ("TF_FIRST", True, 62.5),
        ("TF_SECOND", False, 3.1),
    ]
    assert achievements[0].unlocked_at is not None
    assert achievements[1].unlocked_at is None


@pytest.mark.parametrize("status", [400, 403, 404])
def test_steam_games_without_stats_have_no_achievements(status: int) -> None:
    source = _steam(lambda request: httpx.Response(status))
    assert list(source.fetch_achievements("620", "123")) == []


def test_steam_store_details() -> None:
    payload = {
        "620": {
            "success": True,
            "data": {
                "name": "Portal 2",
                "detailed_description": "Portals.",
                "developers": ["Valve"],
                "publishers": ["Valve"],
                "release_date": {"date": "18 Apr, 2011"},
                "price_overview": {"final": 999, "final_formatted": "9,99€"},
                "genres": [{"id": "1", "description": "Action"}, {"id": "2", "description": "Puzzle"}],
            },
        }
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "store.steampowered.com"
        return httpx.Response(200, json=payload)

    details = _steam(handler).fetch_game_details("620")

    assert details is not None
    assert details.developer == "Valve"
    assert details.price == Decimal("9.99")
    assert details.price_formatted == "9,99€"
    assert details.release_date is not None and details.release_date.year == 2011
    assert details.genres == ["Action", "Puzzle"]


def test_steam_store_details_for_unknown_app() -> None:
    source = _steam(lambda request: httpx.Response(200, json={"1": {"success": False}}))
    assert source.fetch_game_details("1") is None


def _write_manifest(directory: Path, name: str, body) -> Path:
    path = directory / name
    path.write_text(body if isinstance(body, str) else json.dumps(body), encoding="utf-8")
    return path


def test_epic_reads_manifests(tmp_path: Path) -> None:
    install_dir = tmp_path / "Games" / "Fortnite"
    install_dir.mkdir(parents=True)
    os.utime(install_dir, (1700000000, 1700000000))
    manifests = tmp_path / "Manifests"
    manifests.mkdir()
    _write_manifest(
        manifests,
        "A.item",
        {
            "CatalogItemId": "4fe75bbc5a674f4f9b356b5c90567da5",
            "DisplayName": "Fortnite",
            "DeveloperName": "Epic Games",
            "InstallLocation": str(install_dir),
        },
    )
    _write_manifest(manifests, "B.item", {"CatalogItemId": "x", "DisplayName": "No Install"})
    _write_manifest(manifests, "ignored.json", {"CatalogItemId": "y", "DisplayName": "Ignored"})

    candidates = list(EpicLocalSource(manifests, policy=_policy()).fetch_owned_games())

    assert [c.name for c in candidates] == ["Fortnite", "No Install"]
    fortnite = candidates[0]
    assert fortnite.platform is Platform.EPIC_GAMES
    assert fortnite.developer == "Epic Games"
    assert fortnite.playtime_minutes is None
    assert fortnite.last_played is not None
    assert int(fortnite.last_played.timestamp()) == 1700000000
    assert candidates[1].last_played is None


def test_epic_skips_broken_manifests(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    _write_manifest(tmp_path, "bad.item", "{not json")
    _write_manifest(tmp_path, "list.item", [1, 2])
    _write_manifest(tmp_path, "noid.item", {"DisplayName": "Nameless"})
    _write_manifest(tmp_path, "ok.item", {"CatalogItemId": "ok", "DisplayName": "Good"})

    candidates = list(EpicLocalSource(tmp_path, policy=_policy()).fetch_owned_games())

    assert [c.external_id for c in candidates] == ["ok"]
    assert "bad.item" in caplog.text


def test_epic_missing_directory_yields_nothing(tmp_path: Path) -> None:
    source = EpicLocalSource(tmp_path / "nope", policy=_policy())
    assert list(source.fetch_owned_games()) == []


def test_build_sources_registers_one_adapter_per_platform(tmp_path: Path) -> None:
    settings = Settings(steam_api_key="k", epic_manifest_dir=str(tmp_path))
    sources = build_sources(settings, http_client=httpx.Client())
    try:
        assert isinstance(sources[Platform.STEAM], SteamSource)
        assert isinstance(sources[Platform.EPIC_GAMES], EpicLocalSource)
        assert sources[Platform.STEAM].supports_achievements is True
        assert sources[Platform.EPIC_GAMES].supports_achievements is False
    finally:
        for source in sources.values():
            source.close()
