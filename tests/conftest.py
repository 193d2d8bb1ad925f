# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import UTC, datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-kraken-chat")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from kraken_chat.core.identity import synthetic_email
from kraken_chat.core.security import create_access_token
from kraken_chat.db.session import Base
from kraken_chat.db.session import get_db as app_get_session
from kraken_chat.main import app as fastapi_app
from kraken_chat.models import Message
from kraken_chat.schemas.message import MessageCreate
from kraken_chat.services.materializer import ConversationMaterializer

TEST_DB_URL = "sqlite://"

WALLET_A = "0xaa"
WALLET_B = "0xbb"
WALLET_C = "0xcc"
NATIVE_ID = "9b2f6c1e-4d3a-4c55-9a7e-2f1d8b6e0c11"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

        # Services commit, so each test wipes the tables it touched.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def wallet_token(address: str) -> str:
    """Issue a token the way wallet sign-in does: opaque subject, synthetic email."""
    return create_access_token(f"auth-{address}", email=synthetic_email(address))


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers_a() -> dict[str, str]:
    """Authorization headers for wallet 0xAA."""
    return bearer(wallet_token(WALLET_A))


@pytest.fixture()
def auth_headers_b() -> dict[str, str]:
    """Authorization headers for wallet 0xBB."""
    return bearer(wallet_token(WALLET_B))


@pytest.fixture()
def auth_headers_c() -> dict[str, str]:
    """Authorization headers for wallet 0xCC, an outsider to A/B conversations."""
    return bearer(wallet_token(WALLET_C))


@pytest.fixture()
def native_auth_headers() -> dict[str, str]:
    """Authorization headers for a principal without a wallet email."""
    return bearer(create_access_token(NATIVE_ID, email="someone@example.com"))


def at(second: int) -> datetime:
    """Return a fixed UTC timestamp ``second`` seconds into a test day."""
    return datetime(2024, 5, 1, 12, 0, second, tzinfo=UTC)


@pytest.fixture()
def stored_message(db_session: Session) -> Message:
    """A message from 0xAA to 0xBB, stored through the materializer."""
    return ConversationMaterializer(db_session).insert_message(
        WALLET_A,
        MessageCreate(receiver=WALLET_B, content="hi", created_at=at(0)),
    )
