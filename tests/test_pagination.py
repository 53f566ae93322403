"""Cursor pagination: paging through a timeline never repeats or skips rows."""
from datetime import datetime, timedelta, timezone

import pytest

from society.core.errors import RequestValidationFailed
from society.core.pagination import decode_cursor, encode_cursor, paginate
from society.posts.models import Post
from society.utils.dates import utcnow

from tests.conftest import API


def test_cursor_keeps_microseconds():
    moment = datetime(2024, 5, 1, 12, 30, 45, 123456)

    assert decode_cursor(encode_cursor(moment)) == moment


def test_cursor_accepts_zulu_suffix_and_offsets():
    assert decode_cursor("2024-05-01T12:30:45.000001Z") == datetime(2024, 5, 1, 12, 30, 45, 1)
    aware = datetime(2024, 5, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))
    assert encode_cursor(aware) == "2024-05-01T12:30:00.000000"


def test_malformed_cursor_names_the_field():
    with pytest.raises(RequestValidationFailed) as exc_info:
        decode_cursor("yesterday")

    assert exc_info.value.details[0]["field"] == "cursor"


def test_paginate_trims_lookahead_row():
    moments = [datetime(2024, 1, 1, 0, 0, i) for i in (3, 2, 1)]

    items, meta = paginate(moments, 2, key=lambda m: m)
    assert items == moments[:2]
    assert meta == {"cursor": encode_cursor(moments[1]), "hasMore": True}

    items, meta = paginate(moments[:2], 2, key=lambda m: m)
    assert meta == {"hasMore": False}


@pytest.fixture
async def timeline(session_factory, alice):
    start = utcnow() - timedelta(hours=1)
    async with session_factory() as db:
        posts = [
            Post(user_id=alice.id, content=f"post {i}", created_at=start + timedelta(minutes=i))
            for i in range(5)
        ]
        db.add_all(posts)
        await db.commit()
    return posts


async def test_feed_pages_cover_every_post_once(client, alice_headers, timeline):
    seen = []
    cursor = None
    pages = 0
    while True:
        params = {"limit": 2}
        if cursor:
            params["cursor"] = cursor
        response = await client.get(f"{API}/posts", params=params, headers=alice_headers)
        assert response.status_code == 200
        body = response.json()
        seen.extend(item["content"] for item in body["data"])
        pages += 1
        if not body["meta"]["hasMore"]:
            assert "cursor" not in body["meta"]
            break
        cursor = body["meta"]["cursor"]

    assert pages == 3
    assert seen == ["post 4", "post 3", "post 2", "post 1", "post 0"]


async def test_malformed_cursor_is_rejected(client, alice_headers):
    response = await client.get(f"{API}/posts", params={"cursor": "not-a-date"}, headers=alice_headers)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["field"] == "cursor"


async def test_oversized_limit_is_clamped(client, alice_headers, timeline):
    response = await client.get(f"{API}/posts", params={"limit": 500}, headers=alice_headers)

    assert response.status_code == 200
    assert len(response.json()["data"]) == 5


async def test_zero_limit_is_rejected(client, alice_headers):
    response = await client.get(f"{API}/posts", params={"limit": 0}, headers=alice_headers)

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "limit"
