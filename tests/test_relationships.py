"""Friend requests, follows and blocks."""
from tests.conftest import API


# -- Friends --------------------------------------------------------------------

async def test_friend_request_lifecycle(client, alice, bob, alice_headers, bob_headers):
    sent = await client.post(f"{API}/friends/request/{bob.id}", headers=alice_headers)
    assert sent.status_code == 201
    assert sent.json()["data"]["status"] == "pending"

    again = await client.post(f"{API}/friends/request/{bob.id}", headers=alice_headers)
    assert again.json()["error"]["code"] == "REQUEST_PENDING"

    pending = await client.get(f"{API}/friends", params={"status": "pending"}, headers=bob_headers)
    assert [item["user"]["id"] for item in pending.json()["data"]] == [alice.id]

    accepted = await client.post(f"{API}/friends/accept/{alice.id}", headers=bob_headers)
    assert accepted.json()["data"]["status"] == "accepted"

    friends = await client.get(f"{API}/friends", headers=alice_headers)
    assert [item["user"]["id"] for item in friends.json()["data"]] == [bob.id]

    duplicate = await client.post(f"{API}/friends/request/{bob.id}", headers=alice_headers)
    assert duplicate.json()["error"]["code"] == "ALREADY_FRIENDS"


async def test_crossed_requests_become_friendship(client, alice, bob, alice_headers, bob_headers):
    await client.post(f"{API}/friends/request/{bob.id}", headers=alice_headers)

    response = await client.post(f"{API}/friends/request/{alice.id}", headers=bob_headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "accepted"


async def test_reject_and_cancel(client, alice, bob, alice_headers, bob_headers):
    await client.post(f"{API}/friends/request/{bob.id}", headers=alice_headers)
    rejected = await client.post(f"{API}/friends/reject/{alice.id}", headers=bob_headers)
    assert rejected.status_code == 200

    missing = await client.delete(f"{API}/friends/request/{bob.id}", headers=alice_headers)
    assert missing.status_code == 404


async def test_cannot_befriend_self_or_ghost(client, alice, alice_headers):
    own = await client.post(f"{API}/friends/request/{alice.id}", headers=alice_headers)
    ghost = await client.post(f"{API}/friends/request/nobody", headers=alice_headers)

    assert own.status_code == 400
    assert ghost.status_code == 404
    assert ghost.json()["error"]["message"] == "User not found"


async def test_unknown_friend_status_filter(client, alice_headers):
    response = await client.get(f"{API}/friends", params={"status": "everyone"}, headers=alice_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATUS"


# -- Follows --------------------------------------------------------------------

async def test_follow_and_unfollow(client, alice, bob, alice_headers):
    followed = await client.post(f"{API}/follows", json={"userId": bob.id}, headers=alice_headers)
    assert followed.json()["data"] == {"following": True, "followersCount": 1}

    again = await client.post(f"{API}/follows", json={"userId": bob.id}, headers=alice_headers)
    assert again.status_code == 409

    following = await client.get(f"{API}/follows", headers=alice_headers)
    assert [item["id"] for item in following.json()["data"]] == [bob.id]
    assert following.json()["data"][0]["isFollowing"] is True

    unfollowed = await client.delete(f"{API}/follows", params={"userId": bob.id}, headers=alice_headers)
    assert unfollowed.json()["data"] == {"following": False, "followersCount": 0}


async def test_unfollow_when_not_following(client, bob, alice_headers):
    response = await client.delete(f"{API}/follows", params={"userId": bob.id}, headers=alice_headers)

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Not following this user"


async def test_follow_requires_user_id(client, alice, alice_headers):
    missing = await client.post(f"{API}/follows", json={}, headers=alice_headers)
    own = await client.post(f"{API}/follows", json={"userId": alice.id}, headers=alice_headers)

    assert missing.json()["error"]["code"] == "INVALID_REQUEST"
    assert own.json()["error"]["message"] == "You cannot follow yourself"


# -- Blocks ---------------------------------------------------------------------

async def test_block_removes_follows_and_friendship(client, alice, bob, alice_headers, bob_headers):
    await client.post(f"{API}/friends/request/{alice.id}", headers=bob_headers)
    await client.post(f"{API}/friends/accept/{bob.id}", headers=alice_headers)
    await client.post(f"{API}/follows", json={"userId": alice.id}, headers=bob_headers)

    blocked = await client.post(f"{API}/blocks", json={"userId": bob.id}, headers=alice_headers)
    assert blocked.json()["data"] == {"blocked": True}

    friends = await client.get(f"{API}/friends", headers=alice_headers)
    assert friends.json()["data"] == []
    followers = await client.get(f"{API}/follows", params={"type": "followers"}, headers=alice_headers)
    assert followers.json()["data"] == []

    listing = await client.get(f"{API}/blocks", headers=alice_headers)
    assert [item["user"]["id"] for item in listing.json()["data"]] == [bob.id]


async def test_blocked_user_cannot_reconnect(client, alice, bob, alice_headers, bob_headers):
    await client.post(f"{API}/blocks", json={"userId": bob.id}, headers=alice_headers)

    follow = await client.post(f"{API}/follows", json={"userId": alice.id}, headers=bob_headers)
    request = await client.post(f"{API}/friends/request/{alice.id}", headers=bob_headers)

    assert follow.json()["error"]["code"] == "BLOCKED"
    assert request.json()["error"]["code"] == "BLOCKED"


async def test_unblock(client, bob, alice_headers):
    await client.post(f"{API}/blocks", json={"userId": bob.id}, headers=alice_headers)
    again = await client.post(f"{API}/blocks", json={"userId": bob.id}, headers=alice_headers)
    assert again.status_code == 409

    removed = await client.delete(f"{API}/blocks", params={"userId": bob.id}, headers=alice_headers)
    missing = await client.delete(f"{API}/blocks", params={"userId": bob.id}, headers=alice_headers)

    assert removed.json()["data"] == {"blocked": False}
    assert missing.json()["error"]["message"] == "User is not blocked"
