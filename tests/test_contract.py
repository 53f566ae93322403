"""Request contract: identity resolution, envelope, validation details, failures.

Invariants:
    - with_auth answers 401 without ever running the handler for anonymous callers
    - Cookie sessions resolve the full profile, bearer tokens only the user id
    - Body and query validation failures list every failing field by its wire name
    - Unexpected exceptions become a generic 500 that leaks nothing
"""
import re
from datetime import timedelta

import pytest
from fastapi import APIRouter, Request
from pydantic import Field

from society.auth.sessions import session_key
from society.core.middleware import (
    ApiContext,
    generate_request_id,
    parse_body,
    parse_query,
    with_auth,
    with_optional_auth,
)
from society.core.response import success
from society.core.schemas import ApiModel
from society.utils.dates import utcnow

from tests.conftest import API


class EchoBody(ApiModel):
    display_name: str = Field(min_length=1)
    age: int = Field(ge=0)


class EchoQuery(ApiModel):
    limit: int = Field(default=20, ge=1)


calls = []
scratch = APIRouter(prefix="/scratch")


@scratch.get("/private")
@with_auth
async def private(request: Request, ctx: ApiContext, params: dict):
    calls.append(ctx.user_id)
    return success({
        "userId": ctx.user_id,
        "identity": type(ctx.identity).__name__,
        "hasProfile": ctx.user is not None,
    })


@scratch.get("/public")
@with_optional_auth
async def public(request: Request, ctx: ApiContext, params: dict):
    return success({"userId": ctx.user_id, "authenticated": ctx.is_authenticated})


@scratch.post("/echo")
@with_optional_auth
async def echo(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, EchoBody)
    return success(data.model_dump(by_alias=True), meta={"cursor": None, "hasMore": False})


@scratch.get("/query")
@with_optional_auth
async def query(request: Request, ctx: ApiContext, params: dict):
    data = parse_query(request, EchoQuery)
    return success({"limit": data.limit})


@scratch.get("/boom")
@with_optional_auth
async def boom(request: Request, ctx: ApiContext, params: dict):
    raise RuntimeError("password=hunter2 at postgres://db.internal")


@pytest.fixture
async def scratch_client(app, client):
    calls.clear()
    app.include_router(scratch)
    return client


# -- Identity -------------------------------------------------------------------

async def test_anonymous_gets_401_and_handler_never_runs(scratch_client):
    response = await scratch_client.get("/scratch/private")

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": {"code": "UNAUTHORIZED", "message": "Authentication required"},
    }
    assert calls == []


async def test_unknown_bearer_token_is_anonymous(scratch_client):
    response = await scratch_client.get("/scratch/private", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert calls == []


async def test_bearer_token_resolves_user_id_only(scratch_client, alice, alice_headers):
    response = await scratch_client.get("/scratch/private", headers=alice_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data == {"userId": alice.id, "identity": "ResolvedMinimal", "hasProfile": False}
    assert calls == [alice.id]


async def test_cookie_session_resolves_full_profile(scratch_client, settings, alice, alice_headers):
    session_id = alice_headers["Authorization"].split(" ", 1)[1]
    response = await scratch_client.get(
        "/scratch/private", headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}={session_id}"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["identity"] == "ResolvedUser"
    assert response.json()["data"]["hasProfile"] is True


async def test_invalid_cookie_falls_back_to_bearer(scratch_client, settings, alice, alice_headers):
    headers = {**alice_headers, "Cookie": f"{settings.SESSION_COOKIE_NAME}=stale"}
    response = await scratch_client.get("/scratch/private", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["identity"] == "ResolvedMinimal"


async def test_session_resolves_from_database_when_cache_is_down(scratch_client, cache, alice, alice_headers):
    cache.failing = True
    response = await scratch_client.get("/scratch/private", headers=alice_headers)

    assert response.status_code == 200
    assert response.json()["data"]["userId"] == alice.id


async def test_cached_session_lives_shorter_than_the_session(cache, settings, alice_headers):
    session_id = alice_headers["Authorization"].split()[1]
    _, expires_at = cache.store[session_key(session_id)]

    assert expires_at <= utcnow() + timedelta(seconds=settings.SESSION_CACHE_SECONDS)


async def test_session_read_from_database_is_cached_again(scratch_client, cache, alice, alice_headers):
    session_id = alice_headers["Authorization"].split()[1]
    del cache.store[session_key(session_id)]

    response = await scratch_client.get("/scratch/private", headers=alice_headers)

    assert response.json()["data"]["userId"] == alice.id
    value, _ = cache.store[session_key(session_id)]
    assert value["userId"] == alice.id


async def test_optional_auth_lets_anonymous_through(scratch_client):
    response = await scratch_client.get("/scratch/public")

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"userId": None, "authenticated": False}}


# -- Validation -----------------------------------------------------------------

async def test_malformed_json_is_validation_error(scratch_client):
    response = await scratch_client.post(
        "/scratch/echo", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == "Invalid JSON body"


async def test_every_failing_field_is_reported_by_wire_name(scratch_client):
    response = await scratch_client.post("/scratch/echo", json={"displayName": "", "age": -1})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == "Invalid input"
    assert {d["field"] for d in error["details"]} == {"displayName", "age"}
    assert all(d["message"] for d in error["details"])


async def test_valid_body_reaches_handler(scratch_client):
    response = await scratch_client.post("/scratch/echo", json={"displayName": "Ann", "age": 3})

    body = response.json()
    assert body["data"] == {"displayName": "Ann", "age": 3}
    # None values are dropped from meta
    assert body["meta"] == {"hasMore": False}


async def test_bad_query_parameter_is_reported(scratch_client):
    response = await scratch_client.get("/scratch/query", params={"limit": "zero"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["message"] == "Invalid parameters"
    assert error["details"][0]["field"] == "limit"


# -- Failures -------------------------------------------------------------------

async def test_unexpected_exception_is_generic_500(scratch_client, caplog):
    response = await scratch_client.get("/scratch/boom")

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
    }
    assert "hunter2" not in response.text
    assert any("hunter2" in record.getMessage() for record in caplog.records)


async def test_unknown_route_uses_envelope(client):
    response = await client.get(f"{API}/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_security_headers_are_set(client):
    response = await client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ok"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_request_id_format():
    request_id = generate_request_id()

    assert re.fullmatch(r"req_[0-9a-z]+_[0-9a-z]{7}", request_id)
    assert generate_request_id() != request_id
