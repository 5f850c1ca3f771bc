from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional

import httpx

from backlog_tracker.resilience import ResiliencePolicy
from backlog_tracker.schemas import Platform
from backlog_tracker.services.errors import ServiceValidationError
from backlog_tracker.sources.base import (
    CandidateAchievement,
    CandidateGame,
    LibrarySource,
)
from backlog_tracker.utils import from_unix_timestamp

logger = logging.getLogger("backlog_tracker.sources.steam")

STEAM_IMAGE_BASE_URL = "https://steamcdn-a.akamaihd.net/steam/apps/"

# Steam answers "this app has no stats" / "profile is private" with 400/403
_NO_STATS_STATUSES = (400, 403, 404)

_RELEASE_DATE_FORMATS = ("%d %b, %Y", "%b %d, %Y", "%d %B, %Y", "%B %d, %Y", "%Y-%m-%d")


def _parse_release_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in _RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _first(values: Any) -> Optional[str]:
    if isinstance(values, list) and values:
        return str(values[0])
    return None


class SteamSource(LibrarySource):
    """Owned games and achievements from the Steam Web API."""

    supports_achievements = True

    def __init__(
        self,
        api_key: Optional[str],
        policy: ResiliencePolicy,
        client: Optional[httpx.Client] = None,
        api_base_url: str = "https://api.steampowered.com",
        store_base_url: str = "https://store.steampowered.com",
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.store_base_url = store_base_url.rstrip("/")
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": "GameBacklogTracker/1.0"},
        )
        self._get_json = policy(self._request_json)

    @property
    def platform(self) -> Platform:
        return Platform.STEAM

    def _request_json(
        self,
        url: str,
        params: dict[str, Any],
        empty_statuses: tuple[int, ...] = (404,),
    ) -> Optional[dict[str, Any]]:
        response = self._client.get(url, params=params)
        if response.status_code in empty_statuses:
            logger.debug("Steam returned %s for %s", response.status_code, url)
            return None
        response.raise_for_status()
        return response.json()

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ServiceValidationError("Steam API key is not configured")
        return self.api_key

    def fetch_owned_games(self, account_ref: Optional[str]) -> Iterator[CandidateGame]:
        if not account_ref:
            raise ServiceValidationError("A Steam user id is required")
        api_key = self._require_api_key()
        return self._iter_owned_games(api_key, account_ref)

    def _iter_owned_games(self, api_key: str, steam_user_id: str) -> Iterator[CandidateGame]:
        payload = self._get_json(
            f"{self.api_base_url}/IPlayerService/GetOwnedGames/v0001/",
            {
                "key": api_key,
                "steamid": steam_user_id,
                "include_appinfo": "true",
                "include_played_free_games": "true",
                "format": "json",
            },
        )
        games = ((payload or {}).get("response") or {}).get("games") or []
        logger.info(f"Steam reported {len(games)} owned games for {steam_user_id}")
        for entry in games:
            app_id = str(entry["appid"])
            yield CandidateGame(
                external_id=app_id,
                name=entry.get("name") or f"Steam app {app_id}",
                platform=Platform.STEAM,
                playtime_minutes=int(entry.get("playtime_forever") or 0),
                last_played=from_unix_timestamp(entry.get("rtime_last_played")),
                header_image=f"{STEAM_IMAGE_BASE_URL}{app_id}/header.jpg",
                capsule_image=f"{STEAM_IMAGE_BASE_URL}{app_id}/capsule_231x87.jpg",
            )

    def fetch_achievements(
        self, external_id: str, account_ref: Optional[str]
    ) -> Iterable[CandidateAchievement]:
        api_key = self._require_api_key()
        payload = self._get_json(
            f"{self.api_base_url}/ISteamUserStats/GetPlayerAchievements/v0001/",
            {"appid": external_id, "key": api_key, "steamid": account_ref, "l": "english"},
            empty_statuses=_NO_STATS_STATUSES,
        )
        entries = ((payload or {}).get("playerstats") or {}).get("achievements") or []
        if not entries:
            return []

        percentages = self._fetch_global_percentages(external_id)
        achievements = []
        for entry in entries:
            api_name = entry["apiname"]
            achievements.append(
                CandidateAchievement(
                    external_id=api_name,
                    name=entry.get("name") or api_name,
                    description=entry.get("description") or None,
                    is_unlocked=entry.get("achieved") == 1,
                    unlocked_at=from_unix_timestamp(entry.get("unlocktime")),
                    global_percentage=percentages.get(api_name, 0.0),
                )
            )
        return achievements

    def _fetch_global_percentages(self, external_id: str) -> dict[str, float]:
        payload = self._get_json(
            f"{self.api_base_url}/ISteamUserStats/GetGlobalAchievementPercentagesForApp/v0002/",
            {"gameid": external_id},
            empty_statuses=_NO_STATS_STATUSES,
        )
        entries = ((payload or {}).get("achievementpercentages") or {}).get(
            "achievements"
        ) or []
        return {entry["name"]: float(entry.get("percent") or 0) for entry in entries}

    def fetch_game_details(self, external_id: str) -> Optional[CandidateGame]:
        payload = self._get_json(
            f"{self.store_base_url}/api/appdetails", {"appids": external_id}
        )
        app = (payload or {}).get(external_id) or {}
        if not app.get("success") or not app.get("data"):
            return None

        data = app["data"]
        price_overview = data.get("price_overview") or {}
        price = None
        if "final" in price_overview:
            price = Decimal(price_overview["final"]) / Decimal(100)

        return CandidateGame(
            external_id=external_id,
            name=data.get("name") or "",
            platform=Platform.STEAM,
            description=data.get("detailed_description"),
            developer=_first(data.get("developers")),
            publisher=_first(data.get("publishers")),
            release_date=_parse_release_date((data.get("release_date") or {}).get("date")),
            header_image=data.get("header_image"),
            price=price,
            price_formatted=price_overview.get("final_formatted"),
            genres=[g["description"] for g in data.get("genres") or [] if g.get("description")],
        )

    def close(self) -> None:
        self._client.close()
