from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from backlog_tracker.db_models import Achievement, Game, Genre, Tag
from backlog_tracker.schemas import Platform
from backlog_tracker.utils import utcnow

logger = logging.getLogger("backlog_tracker.repository")


class GameRepository:
    """Catalog store access. Every write commits on its own."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ----- reads -----

    def get_all(self) -> Sequence[Game]:
        return self.db.scalars(select(Game).order_by(Game.id)).all()

    def get_by_id(self, game_id: int) -> Optional[Game]:
        return self.db.get(Game, game_id)

    def get_by_external_id(self, platform: Platform, external_id: str) -> Optional[Game]:
        if platform == Platform.STEAM:
            column = Game.steam_app_id
        elif platform == Platform.EPIC_GAMES:
            column = Game.epic_game_id
        else:
            raise ValueError(f"No external id column for platform {platform.value}")
        return self.db.scalar(select(Game).where(column == external_id))

    def get_by_platform(self, platform: Platform) -> Sequence[Game]:
        """Games on ``platform``, including those owned on both platforms."""
        platforms = {platform.value, Platform.BOTH.value}
        query = select(Game).where(Game.platform.in_(platforms)).order_by(Game.id)
        return self.db.scalars(query).all()

    def get_recently_played(self, count: int = 10) -> Sequence[Game]:
        query = (
            select(Game)
            .where(Game.last_played.is_not(None))
            .order_by(Game.last_played.desc(), Game.id.asc())
            .limit(count)
        )
        return self.db.scalars(query).all()

    def search(self, term: str) -> Sequence[Game]:
        """Case-insensitive substring match; ``%`` and ``_`` in ``term`` match literally."""
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        query = (
            select(Game)
            .where(
                or_(
                    Game.name.ilike(pattern, escape="\\"),
                    Game.developer.ilike(pattern, escape="\\"),
                    Game.publisher.ilike(pattern, escape="\\"),
                )
            )
            .order_by(Game.name, Game.id)
        )
        return self.db.scalars(query).all()

    # ----- aggregates -----

    def count(self) -> int:
        return self.db.scalar(select(func.count(Game.id))) or 0

    def sum_playtime_minutes(self) -> int:
        return self.db.scalar(select(func.coalesce(func.sum(Game.playtime_minutes), 0))) or 0

    def achievement_completion_percentage(self) -> float:
        total = self.db.scalar(select(func.count(Achievement.id))) or 0
        if total == 0:
            return 0.0
        unlocked = (
            self.db.scalar(
                select(func.count(Achievement.id)).where(Achievement.is_unlocked.is_(True))
            )
            or 0
        )
        return unlocked / total * 100

    # ----- writes -----

    def add(self, game: Game) -> Game:
        now = utcnow()
        game.created_at = now
        game.updated_at = now
        self.db.add(game)
        self.db.commit()
        self.db.refresh(game)
        return game

    def update(self, game: Game) -> Game:
        game.updated_at = utcnow()
        self.db.add(game)
        self.db.commit()
        self.db.refresh(game)
        return game

    def delete(self, game_id: int) -> bool:
        game = self.db.get(Game, game_id)
        if game is None:
            return False
        self.db.delete(game)
        self.db.commit()
        return True

    def rollback(self) -> None:
        self.db.rollback()

    def get_or_create_genre(self, name: str) -> Genre:
        genre = self.db.scalar(select(Genre).where(Genre.name == name))
        if genre is None:
            genre = Genre(name=name)
            self.db.add(genre)
            self.db.flush()
        return genre

    def get_or_create_tag(self, name: str) -> Tag:
        tag = self.db.scalar(select(Tag).where(Tag.name == name))
        if tag is None:
            tag = Tag(name=name)
            self.db.add(tag)
            self.db.flush()
        return tag
