from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backlog_tracker.db_models import Achievement, Game, GameTag, Genre, Tag, game_genres


def _game(**overrides) -> Game:
    fields = dict(name="Team Fortress 2", platform="Steam", steam_app_id="440")
    fields.update(overrides)
    return Game(**fields)


def test_create_game_with_children(db_session: Session) -> None:
    game = _game()
    game.achievements.append(Achievement(external_id="A", name="First", is_unlocked=True))
    game.genres.append(Genre(name="Action"))
    game.game_tags.append(GameTag(tag=Tag(name="favourite")))
    db_session.add(game)
    db_session.commit()

    loaded = db_session.get(Game, game.id)
    assert loaded is not None
    assert loaded.completion_status == "NotStarted"
    assert loaded.playtime_minutes == 0
    assert loaded.created_at is not None
    assert [a.name for a in loaded.achievements] == ["First"]
    assert [g.name for g in loaded.genres] == ["Action"]
    assert [gt.tag.name for gt in loaded.game_tags] == ["favourite"]


def test_game_needs_an_external_id(db_session: Session) -> None:
    db_session.add(_game(steam_app_id=None))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_external_ids_are_unique(db_session: Session) -> None:
    db_session.add(_game())
    db_session.commit()
    db_session.add(_game(name="Copy"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_achievement_external_id_unique_per_game(db_session: Session) -> None:
    game = _game()
    game.achievements.append(Achievement(external_id="A", name="First"))
    game.achievements.append(Achievement(external_id="A", name="Again"))
    db_session.add(game)
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_deleting_a_game_removes_dependents_but_not_shared_rows(db_session: Session) -> None:
    game = _game(last_played=datetime(2026, 1, 1, tzinfo=timezone.utc))
    game.achievements.append(Achievement(external_id="A", name="First"))
    game.genres.append(Genre(name="Shooter"))
    game.game_tags.append(GameTag(tag=Tag(name="multiplayer")))
    db_session.add(game)
    db_session.commit()

    db_session.delete(game)
    db_session.commit()

    assert db_session.scalar(select(func.count(Achievement.id))) == 0
    assert db_session.scalar(select(func.count(GameTag.game_id))) == 0
    assert db_session.scalar(select(func.count()).select_from(game_genres)) == 0
    assert db_session.scalar(select(func.count(Genre.id))) == 1
    assert db_session.scalar(select(func.count(Tag.id))) == 1
