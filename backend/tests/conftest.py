import asyncio
import os
import sys
from collections.abc import Iterable
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# In-memory SQLite unless the environment says otherwise; the app module
# refuses to import without explicit CORS origins.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")

from scorekeeper.db import Base, get_session  # noqa: E402
from scorekeeper import models  # noqa: E402,F401  # register tables on Base.metadata
from scorekeeper.main import install_exception_handlers  # noqa: E402
from scorekeeper.routers import matches  # noqa: E402
from scorekeeper.scoring.events import parse_event  # noqa: E402

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
PLAYER_NAMES = {"A": ("Ana", "Alex"), "B": ("Bea", "Ben")}


class EventLog:
    """Builds a persisted-shape event log one event at a time."""

    def __init__(
        self,
        match_id="m1",
        best_of=3,
        tiebreak="7pt",
        match_type="singles",
        server="A",
    ):
        self.match_id = match_id
        self.events = []
        size = 1 if match_type == "singles" else 2
        teams = {
            side: {
                "teamId": side,
                "players": [
                    {"playerId": f"{side.lower()}{i}", "displayName": name}
                    for i, name in enumerate(names[:size], start=1)
                ],
            }
            for side, names in PLAYER_NAMES.items()
        }
        self.add(
            "MATCH_CREATED",
            {
                "ruleset": {
                    "bestOf": best_of,
                    "tiebreak": tiebreak,
                    "matchType": match_type,
                },
                "teams": teams,
                "initialServer": server,
            },
        )

    def add(self, type_, payload):
        seq = len(self.events)
        event = parse_event(
            {
                "eventId": f"{self.match_id}-{seq}",
                "matchId": self.match_id,
                "createdAt": CREATED_AT,
                "seq": seq,
                "type": type_,
                "payload": payload,
            }
        )
        self.events.append(event)
        return event

    def point(self, team):
        return self.add("POINT_WON", {"team": team}).event_id

    def points(self, sides):
        return [self.point(side) for side in sides]

    def undo(self, target_id):
        return self.add("UNDO", {"targetEventId": target_id}).event_id

    def redo(self, target_id):
        return self.add("REDO", {"targetEventId": target_id}).event_id

    def annotate(self, point_id, reason):
        return self.add(
            "POINT_ANNOTATED", {"pointEventId": point_id, "reason": reason}
        ).event_id


def _memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def event_log():
    """Factory for fresh in-memory event logs."""
    return EventLog


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_session(anyio_backend):
    """An AsyncSession on a fresh in-memory database."""

    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session_maker = sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )
    async with async_session_maker() as session:
        yield session
    await engine.dispose()


@pytest.fixture()
def matches_client():
    engine = _memory_engine()
    async_session_maker = sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )

    async def init_schema() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_schema())

    async def override_get_session() -> Iterable[AsyncSession]:
        async with async_session_maker() as session:
            yield session

    app = FastAPI()
    install_exception_handlers(app)
    app.include_router(matches.router, prefix="/api/v0")
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client, async_session_maker

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())
