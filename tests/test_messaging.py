"""Conversations and messages."""
import pytest

from tests.conftest import API


@pytest.fixture
async def conversation_id(client, bob, alice_headers):
    response = await client.post(f"{API}/conversations", json={"participantIds": [bob.id]}, headers=alice_headers)
    assert response.status_code == 201
    return response.json()["data"]["conversationId"]


async def test_direct_conversation_is_reused(client, alice, bob, bob_headers, conversation_id):
    response = await client.post(f"{API}/conversations", json={"participantIds": [alice.id]}, headers=bob_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"conversationId": conversation_id, "existing": True}


async def test_conversation_needs_someone_else(client, alice, alice_headers):
    only_me = await client.post(f"{API}/conversations", json={"participantIds": [alice.id]}, headers=alice_headers)
    ghost = await client.post(f"{API}/conversations", json={"participantIds": ["ghost"]}, headers=alice_headers)

    assert only_me.status_code == 400
    assert ghost.status_code == 404


async def test_messages_come_back_oldest_first(client, alice_headers, bob_headers, conversation_id):
    url = f"{API}/conversations/{conversation_id}/messages"
    for text in ("one", "two", "three"):
        response = await client.post(url, json={"content": text}, headers=alice_headers)
        assert response.status_code == 201

    page = await client.get(url, params={"limit": 2}, headers=bob_headers)
    assert [m["content"] for m in page.json()["data"]] == ["two", "three"]
    assert page.json()["meta"]["hasMore"] is True

    older = await client.get(url, params={"limit": 2, "cursor": page.json()["meta"]["cursor"]}, headers=bob_headers)
    assert [m["content"] for m in older.json()["data"]] == ["one"]
    assert older.json()["meta"]["hasMore"] is False


async def test_conversation_list_shows_unread(client, alice, alice_headers, bob_headers, conversation_id):
    await client.post(
        f"{API}/conversations/{conversation_id}/messages", json={"content": "hey"}, headers=alice_headers
    )

    listing = await client.get(f"{API}/conversations", headers=bob_headers)

    [summary] = listing.json()["data"]
    assert summary["participants"][0]["id"] == alice.id
    assert summary["lastMessage"]["content"] == "hey"
    assert summary["unreadCount"] == 1


async def test_outsiders_cannot_read(client, make_user, sign_in, conversation_id):
    outsider = await sign_in(await make_user("mallory"))

    response = await client.get(f"{API}/conversations/{conversation_id}/messages", headers=outsider)

    assert response.status_code == 403


async def test_empty_message_is_rejected(client, alice_headers, conversation_id):
    response = await client.post(
        f"{API}/conversations/{conversation_id}/messages", json={"content": " "}, headers=alice_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
