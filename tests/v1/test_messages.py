# tests/v1/test_messages.py
"""Tests for message endpoints."""

from fastapi import status

from kraken_chat.core.security import create_access_token
from kraken_chat.errors import ConversationConflict
from kraken_chat.services.materializer import ConversationMaterializer
from tests.conftest import NATIVE_ID, WALLET_A, WALLET_B, bearer


def _post(client, headers, receiver, content, **extra):
    return client.post(
        "/api/v1/messages/",
        json={"receiver": receiver, "content": content, **extra},
        headers=headers,
    )


def test_send_message_creates_conversation(client, auth_headers_a, auth_headers_b) -> None:
    response = _post(client, auth_headers_a, "0xBB", "hi", created_at="2024-05-01T12:00:00Z")

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["sender"] == WALLET_A
    assert data["receiver"] == WALLET_B
    assert data["status"] == "sent"
    assert data["encrypted"] is False
    assert data["conversation_id"]

    conversations = client.get("/api/v1/conversations/", headers=auth_headers_b).json()
    assert len(conversations) == 1
    assert conversations[0]["id"] == data["conversation_id"]
    assert conversations[0]["participants"] == [WALLET_A, WALLET_B]
    assert conversations[0]["last_message"] == "hi"


def test_reply_lands_in_same_conversation(client, auth_headers_a, auth_headers_b) -> None:
    first = _post(client, auth_headers_a, WALLET_B, "hi").json()
    reply = _post(client, auth_headers_b, WALLET_A, "hey").json()

    assert reply["conversation_id"] == first["conversation_id"]
    conversations = client.get("/api/v1/conversations/", headers=auth_headers_a).json()
    assert [c["last_message"] for c in conversations] == ["hey"]


def test_client_supplied_id_is_idempotent(client, auth_headers_a) -> None:
    payload = {"id": "8f14e45f-ceea-467f-a0e6-5a1f7b1c2d3e", "encrypted": True}

    first = _post(client, auth_headers_a, WALLET_B, "once", **payload)
    second = _post(client, auth_headers_a, WALLET_B, "once", **payload)

    assert first.status_code == second.status_code == status.HTTP_201_CREATED
    assert first.json()["id"] == second.json()["id"] == payload["id"]
    messages = client.get("/api/v1/messages/", headers=auth_headers_a).json()
    assert len(messages) == 1
    assert messages[0]["encrypted"] is True


def test_native_principal_sends_as_subject(client, native_auth_headers) -> None:
    response = _post(client, native_auth_headers, WALLET_A, "from a native account")

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["sender"] == NATIVE_ID


def test_native_principal_with_mixed_case_id_receives_messages(client, auth_headers_a) -> None:
    sent = _post(client, auth_headers_a, "User-7B", "hello native")
    assert sent.json()["receiver"] == "User-7B"

    headers = bearer(create_access_token("User-7B", email="someone@example.com"))
    inbox = client.get("/api/v1/messages/", headers=headers).json()

    assert [m["content"] for m in inbox] == ["hello native"]


def test_self_message_is_bad_request(client, auth_headers_a) -> None:
    response = _post(client, auth_headers_a, WALLET_A, "me")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_forged_sender_is_forbidden(client, auth_headers_c) -> None:
    response = _post(client, auth_headers_c, WALLET_B, "forged", sender=WALLET_A)

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_conversation_is_not_found(client, auth_headers_a) -> None:
    response = _post(client, auth_headers_a, WALLET_B, "hi", conversation_id="missing")

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_invalid_token_is_unauthorized(client) -> None:
    response = _post(client, bearer("not-a-jwt"), WALLET_B, "hi")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_ambiguous_principal_is_unauthorized(client) -> None:
    headers = bearer(create_access_token("uid", email="@kraken.web3"))

    response = _post(client, headers, WALLET_B, "hi")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_conversation_conflict_maps_to_409(client, auth_headers_a, mocker) -> None:
    mocker.patch.object(
        ConversationMaterializer,
        "insert_message",
        side_effect=ConversationConflict("0xaa:0xbb", 2),
    )

    response = _post(client, auth_headers_a, WALLET_B, "hi")

    assert response.status_code == status.HTTP_409_CONFLICT


def test_list_messages_is_scoped_and_newest_first(
    client, auth_headers_a, auth_headers_b, auth_headers_c
) -> None:
    _post(client, auth_headers_a, WALLET_B, "one", created_at="2024-05-01T12:00:00Z")
    _post(client, auth_headers_b, WALLET_A, "two", created_at="2024-05-01T12:00:05Z")
    _post(client, auth_headers_c, WALLET_B, "elsewhere", created_at="2024-05-01T12:00:09Z")

    contents = [m["content"] for m in client.get("/api/v1/messages/", headers=auth_headers_a).json()]
    assert contents == ["two", "one"]

    outsider = client.get("/api/v1/messages/", headers=auth_headers_c).json()
    assert [m["content"] for m in outsider] == ["elsewhere"]

    by_peer = client.get(
        "/api/v1/messages/",
        params={"peer": "0xCC"},
        headers=auth_headers_b,
    ).json()
    assert [m["content"] for m in by_peer] == ["elsewhere"]


def test_list_messages_pages_with_before(client, auth_headers_a) -> None:
    for second in range(3):
        _post(
            client,
            auth_headers_a,
            WALLET_B,
            f"m{second}",
            created_at=f"2024-05-01T12:00:0{second}Z",
        )

    page = client.get("/api/v1/messages/", params={"limit": 2}, headers=auth_headers_a).json()
    assert [m["content"] for m in page] == ["m2", "m1"]

    rest = client.get(
        "/api/v1/messages/",
        params={"limit": 2, "before": "2024-05-01T12:00:01Z"},
        headers=auth_headers_a,
    ).json()
    assert [m["content"] for m in rest] == ["m0"]


def test_list_messages_cursor_splits_tied_timestamps(client, auth_headers_a) -> None:
    for index in range(3):
        _post(client, auth_headers_a, WALLET_B, f"m{index}", id=f"m{index}", created_at="2024-05-01T12:00:00Z")

    page = client.get("/api/v1/messages/", params={"limit": 2}, headers=auth_headers_a).json()
    assert [m["id"] for m in page] == ["m2", "m1"]

    rest = client.get(
        "/api/v1/messages/",
        params={"limit": 2, "before": page[-1]["created_at"], "before_id": page[-1]["id"]},
        headers=auth_headers_a,
    ).json()
    assert [m["id"] for m in rest] == ["m0"]


def test_get_message_hides_rows_from_outsiders(client, auth_headers_a, auth_headers_c) -> None:
    message_id = _post(client, auth_headers_a, WALLET_B, "private").json()["id"]

    assert client.get(f"/api/v1/messages/{message_id}", headers=auth_headers_a).status_code == 200
    response = client.get(f"/api/v1/messages/{message_id}", headers=auth_headers_c)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_only_sender_updates_message(client, auth_headers_a, auth_headers_b) -> None:
    message_id = _post(client, auth_headers_a, WALLET_B, "hi").json()["id"]

    denied = client.patch(
        f"/api/v1/messages/{message_id}",
        json={"status": "delivered"},
        headers=auth_headers_b,
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    updated = client.patch(
        f"/api/v1/messages/{message_id}",
        json={"status": "failed", "error": "relay down", "retries": 1},
        headers=auth_headers_a,
    )
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["status"] == "failed"
    assert updated.json()["retries"] == 1
