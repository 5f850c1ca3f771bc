from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from backlog_tracker.resilience import ResiliencePolicy
from backlog_tracker.schemas import Platform
from backlog_tracker.sources.base import CandidateGame, LibrarySource

logger = logging.getLogger("backlog_tracker.sources.epic")


class EpicLocalSource(LibrarySource):
    """Installed Epic Games read from the launcher's ``*.item`` manifests.

    The launcher writes one JSON manifest per installed title. Playtime is
    not recorded there, so candidates never carry it; the install folder's
    modification time stands in for the last-played date.
    """

    def __init__(self, manifest_dir: str | Path, policy: ResiliencePolicy) -> None:
        self.manifest_dir = Path(manifest_dir)
        self._list_manifests = policy(self._glob_manifests)

    @property
    def platform(self) -> Platform:
        return Platform.EPIC_GAMES

    def _glob_manifests(self) -> list[Path]:
        if not self.manifest_dir.is_dir():
            logger.warning(f"Epic manifest directory not found: {self.manifest_dir}")
            return []
        return sorted(self.manifest_dir.glob("*.item"))

    def fetch_owned_games(self, account_ref: Optional[str] = None) -> Iterator[CandidateGame]:
        manifests = self._list_manifests()
        logger.info(f"Found {len(manifests)} Epic manifests in {self.manifest_dir}")
        return self._iter_candidates(manifests)

    def _iter_candidates(self, manifests: list[Path]) -> Iterator[CandidateGame]:
        for path in manifests:
            manifest = self._read_manifest(path)
            if manifest is None:
                continue
            catalog_id = manifest.get("CatalogItemId")
            display_name = manifest.get("DisplayName")
            if not catalog_id or not display_name:
                logger.debug(f"Skipping manifest without id or name: {path.name}")
                continue
            yield CandidateGame(
                external_id=catalog_id,
                name=display_name,
                platform=Platform.EPIC_GAMES,
                developer=manifest.get("DeveloperName") or None,
                last_played=self._install_mtime(manifest.get("InstallLocation")),
            )

    @staticmethod
    def _read_manifest(path: Path) -> Optional[dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Skipping unreadable Epic manifest {path.name}: {exc}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Skipping malformed Epic manifest {path.name}")
            return None
        return data

    @staticmethod
    def _install_mtime(install_location: Optional[str]) -> Optional[datetime]:
        if not install_location:
            return None
        install_dir = Path(install_location)
        if not install_dir.is_dir():
            return None
        return datetime.fromtimestamp(install_dir.stat().st_mtime, tz=timezone.utc)
