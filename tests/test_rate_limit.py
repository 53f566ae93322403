"""Fixed-window rate limiting, failing open when the cache is down."""
from society.core.middleware import check_rate_limit
from society.utils.dates import epoch_ms

from tests.conftest import API
from tests.fakes import FakeCache


async def test_request_over_the_limit_is_refused():
    cache = FakeCache()

    allowed = [await check_rate_limit(cache, "ip:1", limit=3, window_seconds=60) for _ in range(3)]

    assert allowed == [True, True, True]
    assert await check_rate_limit(cache, "ip:1", limit=3, window_seconds=60) is False
    assert await check_rate_limit(cache, "ip:2", limit=3, window_seconds=60) is True


async def test_new_window_starts_after_reset():
    cache = FakeCache()
    for _ in range(2):
        await check_rate_limit(cache, "ip:1", limit=2, window_seconds=60)
    assert await check_rate_limit(cache, "ip:1", limit=2, window_seconds=60) is False

    record, expires_at = cache.store["ratelimit:ip:1"]
    cache.store["ratelimit:ip:1"] = ({**record, "resetAt": epoch_ms() - 1}, expires_at)

    assert await check_rate_limit(cache, "ip:1", limit=2, window_seconds=60) is True
    assert (await cache.get("ratelimit:ip:1"))["count"] == 1


async def test_cache_failure_lets_requests_through():
    cache = FakeCache()
    cache.failing = True

    assert all([await check_rate_limit(cache, "ip:1", limit=1) for _ in range(5)])


async def test_forgot_password_is_limited_per_client(client, alice):
    body = {"email": alice.email}
    statuses = [(await client.post(f"{API}/auth/forgot-password", json=body)).status_code for _ in range(6)]

    assert statuses == [200] * 5 + [429]
    response = await client.post(f"{API}/auth/forgot-password", json=body)
    assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"


async def test_forgot_password_still_works_without_cache(client, cache, mailer, alice):
    cache.failing = True

    for _ in range(7):
        response = await client.post(f"{API}/auth/forgot-password", json={"email": alice.email})
        assert response.status_code == 200
    assert len(mailer.outbox) == 7
