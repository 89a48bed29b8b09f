import pytest
import fakeredis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import redis as redis_module
from app.core.settings import settings
from app.db import models_registry  # noqa: F401
from app.db.base import Base
from app.db.session import get_db, get_session_factory
from app.main import app
from app.services.relay_hub import RelayHub, get_relay_hub

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def user_headers(user_id: str) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": "user"}


def guest_headers(token: str) -> dict:
    return {"X-Guest-Session": token}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_module, "redis_client", fake)
    return fake


@pytest.fixture
def hub():
    return RelayHub()


@pytest.fixture
def client(session_factory, hub, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_REPLY_DELAY_SECONDS", 0)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_relay_hub] = lambda: hub
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
