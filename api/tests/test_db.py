from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import Session

from backlog_tracker.db import get_db


def test_db_dependency(app: FastAPI) -> None:
    # Register a temporary route for exercising the DB dependency
    @app.get("/api/v1/_db-check")
    def db_check(db: Session = Depends(get_db)) -> dict[str, bool]:
        assert isinstance(db, Session)
        foreign_keys = db.execute(text("PRAGMA foreign_keys")).scalar()
        return {"ok": True, "foreign_keys": bool(foreign_keys)}

    with TestClient(app) as client:
        resp = client.get("/api/v1/_db-check")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "foreign_keys": True}
