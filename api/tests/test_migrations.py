from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect


def test_alembic_upgrade_head_creates_tables(tmp_path: Path) -> None:
    # Configure Alembic to use the project alembic.ini against a scratch database
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")

    insp = inspect(create_engine(url))
    tables = set(insp.get_table_names())
    for t in ("games", "achievements", "genres", "game_genres", "tags", "game_tags"):
        assert t in tables

    command.downgrade(cfg, "base")
    assert "games" not in set(inspect(create_engine(url)).get_table_names())
