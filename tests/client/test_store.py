# tests/client/test_store.py
"""Tests for the client's durable message stores."""

from __future__ import annotations

import httpx
import pytest

from kraken_chat.client.engine import ReconciliationEngine
from kraken_chat.client.models import TRANSPORT_STORE, ChatSession
from kraken_chat.client.store import (
    ApiMessageStore,
    SqlMessageStore,
    message_from_record,
)
from kraken_chat.client.transport import LoopbackHub, LoopbackTransport
from kraken_chat.db.time import to_epoch_ms
from kraken_chat.errors import StoreUnavailable
from kraken_chat.schemas.message import MessageCreate
from kraken_chat.services.materializer import ConversationMaterializer
from tests.conftest import WALLET_A, WALLET_B, WALLET_C, at, wallet_token


def _record(message_id: str, second: int) -> dict:
    return {
        "id": message_id,
        "conversation_id": "c1",
        "sender": WALLET_B,
        "receiver": WALLET_A,
        "content": f"content {message_id}",
        "created_at": f"2024-05-01T12:00:{second:02d}Z",
        "status": "sent",
        "error": "",
        "retries": 0,
        "encrypted": True,
    }


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url="http://api.test", transport=httpx.MockTransport(handler))


def _api_store(client: httpx.AsyncClient, page_size: int = 2) -> ApiMessageStore:
    session = ChatSession.for_wallet(WALLET_A, access_token="token-a")
    return ApiMessageStore(session, client=client, page_size=page_size)


def test_message_from_record_converts_timestamp():
    message = message_from_record(_record("m1", 5))

    assert message.timestamp == to_epoch_ms(at(5))
    assert message.transport == TRANSPORT_STORE
    assert message.encrypted is True
    assert message.conversation_id == "c1"


def test_api_store_requires_access_token():
    with pytest.raises(ValueError):
        ApiMessageStore(ChatSession.for_wallet(WALLET_A))


@pytest.mark.asyncio
async def test_api_store_pages_through_history():
    pages = {
        None: [_record("m3", 3), _record("m2", 2)],
        "2024-05-01T12:00:02Z": [_record("m1", 1)],
    }
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        before = request.url.params.get("before")
        return httpx.Response(200, json=pages[before])

    async with _mock_client(handler) as client:
        messages = await _api_store(client).load()

    assert [m.id for m in messages] == ["m3", "m2", "m1"]
    assert all(m.transport == TRANSPORT_STORE for m in messages)
    assert len(requests) == 2
    assert requests[0].headers["Authorization"] == "Bearer token-a"
    assert requests[0].url.path == "/api/v1/messages/"
    assert requests[0].url.params["limit"] == "2"
    assert requests[1].url.params["before_id"] == "m2"


@pytest.mark.asyncio
async def test_api_store_skips_malformed_records():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[_record("m1", 1), {"id": "broken"}])

    async with _mock_client(handler) as client:
        messages = await _api_store(client, page_size=10).load()

    assert [m.id for m in messages] == ["m1"]


@pytest.mark.asyncio
async def test_api_store_maps_http_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"detail": "Could not validate credentials"})

    async with _mock_client(handler) as client:
        with pytest.raises(StoreUnavailable):
            await _api_store(client).load()


@pytest.mark.asyncio
async def test_api_store_reads_from_the_http_api(client, auth_headers_a):
    """Load history from the real endpoints through the FastAPI app."""
    client.post(
        "/api/v1/messages/",
        json={"receiver": WALLET_B, "content": "stored", "created_at": "2024-05-01T12:00:00Z"},
        headers=auth_headers_a,
    )
    token = auth_headers_a["Authorization"].removeprefix("Bearer ")
    session = ChatSession.from_access_token(token)

    def handler(request: httpx.Request) -> httpx.Response:
        response = client.get(
            request.url.path,
            params=dict(request.url.params),
            headers={"Authorization": request.headers["Authorization"]},
        )
        return httpx.Response(response.status_code, json=response.json())

    async with _mock_client(handler) as http:
        messages = await ApiMessageStore(session, client=http).load()

    assert [(m.sender, m.receiver, m.content) for m in messages] == [(WALLET_A, WALLET_B, "stored")]
    assert messages[0].timestamp == to_epoch_ms(at(0))


@pytest.mark.asyncio
async def test_api_store_loads_every_message_sharing_a_page_boundary_timestamp(client, auth_headers_a):
    for index in range(3):
        client.post(
            "/api/v1/messages/",
            json={
                "id": f"m{index}",
                "receiver": WALLET_B,
                "content": f"tied {index}",
                "created_at": "2024-05-01T12:00:00Z",
            },
            headers=auth_headers_a,
        )
    token = auth_headers_a["Authorization"].removeprefix("Bearer ")

    def handler(request: httpx.Request) -> httpx.Response:
        response = client.get(
            request.url.path,
            params=dict(request.url.params),
            headers={"Authorization": request.headers["Authorization"]},
        )
        return httpx.Response(response.status_code, json=response.json())

    async with _mock_client(handler) as http:
        store = ApiMessageStore(ChatSession.from_access_token(token), client=http, page_size=2)
        messages = await store.load()

    assert [m.id for m in messages] == ["m2", "m1", "m0"]


@pytest.mark.asyncio
async def test_sql_store_returns_only_readable_messages(db_session, session_factory):
    materializer = ConversationMaterializer(db_session)
    materializer.insert_message(WALLET_A, MessageCreate(receiver=WALLET_B, content="hi", created_at=at(1)))
    materializer.insert_message(WALLET_B, MessageCreate(receiver=WALLET_A, content="yo", created_at=at(2)))
    materializer.insert_message(WALLET_B, MessageCreate(receiver=WALLET_C, content="other", created_at=at(3)))

    messages = await SqlMessageStore(session_factory, WALLET_A).load()

    assert sorted(m.content for m in messages) == ["hi", "yo"]
    assert all(m.transport == TRANSPORT_STORE for m in messages)
    assert {m.timestamp for m in messages} == {to_epoch_ms(at(1)), to_epoch_ms(at(2))}


@pytest.mark.asyncio
async def test_engine_shows_stored_and_relayed_copy_once(db_session, session_factory):
    """A message persisted under its peer-channel id and relayed live is shown once."""
    stored = ConversationMaterializer(db_session).insert_message(
        WALLET_B,
        MessageCreate(id="m1", receiver=WALLET_A, content="gm", created_at=at(0)),
    )

    hub = LoopbackHub()
    engine = ReconciliationEngine(
        ChatSession.from_access_token(wallet_token(WALLET_A)),
        LoopbackTransport(hub),
        SqlMessageStore(session_factory, WALLET_A),
    )
    await engine.start()
    assert [(m.id, m.transport) for m in engine.messages] == [("m1", TRANSPORT_STORE)]

    relayed = message_from_record(
        {
            "id": stored.id,
            "sender": WALLET_B,
            "receiver": WALLET_A,
            "content": "gm",
            "created_at": "2024-05-01T12:00:00Z",
        }
    )
    assert hub.route(relayed) is True
    await engine.settle()

    assert [m.id for m in engine.messages] == ["m1"]
    assert engine.conversations[0].last_message == "gm"
    await engine.destroy()
