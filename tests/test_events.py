"""Events: creation rules, listings and attendance."""
from datetime import timedelta

from society.utils.dates import utcnow

from tests.conftest import API


def _in_days(days):
    return (utcnow() + timedelta(days=days)).isoformat() + "Z"


async def _create_event(client, headers, **body):
    body.setdefault("title", "Meetup")
    body.setdefault("startDate", _in_days(2))
    response = await client.post(f"{API}/events", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_creator_is_going(client, alice, alice_headers):
    event = await _create_event(client, alice_headers)

    assert event["creator"]["id"] == alice.id
    assert event["attendeeCounts"] == {"going": 1, "interested": 0}
    assert event["userStatus"] == "going"
    assert event["isCreator"] is True


async def test_start_date_must_be_in_future(client, alice_headers):
    response = await client.post(
        f"{API}/events", json={"title": "Yesterday", "startDate": _in_days(-1)}, headers=alice_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Start date must be in the future"


async def test_end_before_start_is_rejected(client, alice_headers):
    response = await client.post(
        f"{API}/events",
        json={"title": "Backwards", "startDate": _in_days(3), "endDate": _in_days(2)},
        headers=alice_headers,
    )

    assert response.status_code == 400


async def test_upcoming_runs_soonest_first(client, alice_headers):
    await _create_event(client, alice_headers, title="Later", startDate=_in_days(5))
    await _create_event(client, alice_headers, title="Sooner", startDate=_in_days(1))

    first = await client.get(f"{API}/events", params={"limit": 1})
    assert [e["title"] for e in first.json()["data"]] == ["Sooner"]
    assert first.json()["meta"]["hasMore"] is True

    second = await client.get(f"{API}/events", params={"limit": 1, "cursor": first.json()["meta"]["cursor"]})
    assert [e["title"] for e in second.json()["data"]] == ["Later"]
    assert second.json()["meta"]["hasMore"] is False


async def test_my_events_need_sign_in(client):
    response = await client.get(f"{API}/events", params={"filter": "my"})

    assert response.status_code == 401


async def test_private_event_hidden_from_strangers(client, alice_headers, bob_headers):
    event = await _create_event(client, alice_headers, isPublic=False)

    response = await client.get(f"{API}/events/{event['id']}", headers=bob_headers)

    assert response.status_code == 403


async def test_attendance_respects_capacity(client, make_user, sign_in, alice_headers, bob_headers):
    event = await _create_event(client, alice_headers, maxAttendees=2)

    going = await client.post(f"{API}/events/{event['id']}/attend", json={"status": "going"}, headers=bob_headers)
    assert going.json()["data"] == {"status": "going", "attendeeCounts": {"going": 2, "interested": 0}}

    carol_headers = await sign_in(await make_user("carol"))
    full = await client.post(f"{API}/events/{event['id']}/attend", json={"status": "going"}, headers=carol_headers)
    assert full.status_code == 400
    assert full.json()["error"]["code"] == "LIMIT_EXCEEDED"

    interested = await client.post(
        f"{API}/events/{event['id']}/attend", json={"status": "interested"}, headers=carol_headers
    )
    assert interested.json()["data"]["attendeeCounts"] == {"going": 2, "interested": 1}

    left = await client.post(f"{API}/events/{event['id']}/attend", json={"status": "not_going"}, headers=bob_headers)
    assert left.json()["data"] == {"status": "not_going", "attendeeCounts": {"going": 1, "interested": 1}}


async def test_only_creator_edits_and_deletes(client, alice_headers, bob_headers):
    event = await _create_event(client, alice_headers)

    denied = await client.put(f"{API}/events/{event['id']}", json={"title": "Mine"}, headers=bob_headers)
    assert denied.status_code == 403

    renamed = await client.put(f"{API}/events/{event['id']}", json={"title": "Renamed"}, headers=alice_headers)
    assert renamed.json()["data"]["title"] == "Renamed"

    deleted = await client.delete(f"{API}/events/{event['id']}", headers=alice_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"{API}/events/{event['id']}")).status_code == 404
