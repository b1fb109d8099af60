"""API key and scope enforcement."""
from uuid import uuid4

import pytest
from sqlalchemy import select

from orderdesk.models import ApiKey, ApiScope, AuditLog


@pytest.mark.anyio("asyncio")
async def test_missing_key_is_rejected(client):
    response = await client.get("/notifications")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NO_API_KEY"


@pytest.mark.anyio("asyncio")
async def test_unknown_key_is_rejected(client):
    response = await client.get("/notifications", headers={"Authorization": "Bearer odk_nope.nope"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"


@pytest.mark.anyio("asyncio")
async def test_revoked_key_is_rejected(client, make_user, make_api_key):
    headers = make_api_key(make_user(), is_active=False)
    response = await client.get("/notifications", headers=headers)
    assert response.status_code == 401


@pytest.mark.anyio("asyncio")
async def test_x_api_key_header_accepted(client, make_user, make_api_key):
    headers = make_api_key(make_user())
    token = headers["Authorization"].split(" ", 1)[1]
    response = await client.get("/notifications", headers={"X-API-Key": token})
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.anyio("asyncio")
async def test_user_key_cannot_manage_users(client, make_user, make_api_key):
    headers = make_api_key(make_user())
    response = await client.post(
        "/users",
        json={"username": f"u-{uuid4().hex[:8]}", "email": f"u-{uuid4().hex[:8]}@example.com"},
        headers=headers,
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_SCOPE"


@pytest.mark.anyio("asyncio")
async def test_admin_issues_and_revokes_keys(client, admin_headers, db_session):
    username = f"owner-{uuid4().hex[:8]}"
    user = await client.post(
        "/users", json={"username": username, "email": f"{username}@example.com"}, headers=admin_headers
    )
    assert user.status_code == 201

    created = await client.post(
        "/apikeys", json={"name": f"key-{uuid4().hex[:8]}", "user_id": user.json()["id"]}, headers=admin_headers
    )
    assert created.status_code == 201
    body = created.json()
    assert body["key"].startswith(body["prefix"])
    assert body["scope"] == ApiScope.user.value

    new_headers = {"Authorization": f"Bearer {body['key']}"}
    assert (await client.get("/notifications", headers=new_headers)).status_code == 200

    revoked = await client.delete(f"/apikeys/{body['id']}", headers=admin_headers)
    assert revoked.status_code == 204
    assert (await client.get("/notifications", headers=new_headers)).status_code == 401

    row = db_session.get(ApiKey, body["id"])
    db_session.refresh(row)
    assert row.is_active is False
    actions = set(db_session.scalars(select(AuditLog.action)))
    assert {"create_user", "create_api_key", "revoke_api_key"} <= actions


@pytest.mark.anyio("asyncio")
async def test_duplicate_username_conflicts(client, admin_headers):
    username = f"dup-{uuid4().hex[:8]}"
    payload = {"username": username, "email": f"{username}@example.com"}
    assert (await client.post("/users", json=payload, headers=admin_headers)).status_code == 201
    response = await client.post("/users", json=payload, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "USER_EXISTS"


@pytest.mark.anyio("asyncio")
async def test_invalid_email_is_validation_error(client, admin_headers):
    response = await client.post("/users", json={"username": "x", "email": "not-an-email"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio("asyncio")
async def test_user_read_lists_company_memberships(client, admin_headers, world):
    response = await client.get(f"/users/{world.employee_user.id}", headers=admin_headers)

    assert response.status_code == 200
    [membership] = response.json()["memberships"]
    assert membership["company_id"] == world.company.id
    assert membership["role"] == "employee"
    assert membership["department"] == "Sales"

    username = f"fresh-{uuid4().hex[:8]}"
    created = await client.post(
        "/users", json={"username": username, "email": f"{username}@example.com"}, headers=admin_headers
    )
    assert created.json()["memberships"] == []
