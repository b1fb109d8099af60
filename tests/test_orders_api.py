from decimal import Decimal
from uuid import uuid4

import pytest

from orderdesk.models import User
from orderdesk.services.cron import process_scheduled_tasks_once


@pytest.fixture
def keys(world, make_api_key):
    return {
        "admin": make_api_key(world.admin_user),
        "employee": make_api_key(world.employee_user),
        "vendor": make_api_key(world.vendor_user),
    }


async def _fill_cart(client, world, headers, quantity, size="M"):
    response = await client.post(
        "/cart/items",
        json={
            "company_id": world.company.id,
            "product_variant_id": world.variant.id,
            "size": size,
            "quantity": quantity,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


async def _checkout(client, world, headers, **extra_headers):
    return await client.post(
        "/orders", json={"company_id": world.company.id}, headers={**headers, **extra_headers}
    )


@pytest.mark.anyio("asyncio")
async def test_order_flow_over_http(client, db_session, world, keys, fund_member):
    fund_member(world, "500")
    await _fill_cart(client, world, keys["employee"], 2)

    cart = await client.get("/cart", params={"company_id": world.company.id}, headers=keys["employee"])
    assert [item["quantity"] for item in cart.json()] == [2]

    idempotency = {"Idempotency-Key": uuid4().hex}
    created = await _checkout(client, world, keys["employee"], **idempotency)
    assert created.status_code == 201
    order = created.json()
    assert order["status"] == "pending_approval"
    assert Decimal(order["total_amount"]) == Decimal("100.00")
    assert order["items"][0]["size"] == "M"

    replay = await _checkout(client, world, keys["employee"], **idempotency)
    assert replay.json()["id"] == order["id"]

    pending = await client.get("/approvals/pending", params={"company_id": world.company.id}, headers=keys["admin"])
    assert [row["order_id"] for row in pending.json()] == [order["id"]]
    assert pending.json()[0]["department"] == "Sales"

    forbidden = await client.post(f"/approvals/{order['id']}/approve", headers=keys["employee"])
    assert forbidden.status_code == 403

    approved = await client.post(f"/approvals/{order['id']}/approve", json={"notes": "fine"}, headers=keys["admin"])
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    stats = await client.get("/orders/stats", params={"company_id": world.company.id}, headers=keys["employee"])
    assert Decimal(stats.json()["spent"]) == Decimal("100.00")
    assert Decimal(stats.json()["remaining"]) == Decimal("400.00")

    process_scheduled_tasks_once(db_session=db_session)

    purchase_orders = await client.get("/purchase-orders/vendor", headers=keys["vendor"])
    assert purchase_orders.status_code == 200
    assert [po["order_id"] for po in purchase_orders.json()] == [order["id"]]

    for target in ("in_production", "shipped"):
        moved = await client.post(
            f"/orders/{order['id']}/status", json={"status": target}, headers=keys["vendor"]
        )
        assert moved.status_code == 200
        assert moved.json()["status"] == target

    backwards = await client.post(
        f"/orders/{order['id']}/status", json={"status": "confirmed"}, headers=keys["admin"]
    )
    assert backwards.status_code == 409
    assert backwards.json()["error"]["code"] == "INVALID_TRANSITION"

    delivered = await client.post(
        f"/orders/{order['id']}/status", json={"status": "delivered"}, headers=keys["admin"]
    )
    assert delivered.json()["status"] == "delivered"

    notifications = await client.get("/notifications", headers=keys["employee"])
    kinds = {item["type"] for item in notifications.json()}
    assert {"order_approved", "order_shipped", "order_delivered"} <= kinds


@pytest.mark.anyio("asyncio")
async def test_checkout_over_budget_is_conflict(client, world, keys, fund_member):
    fund_member(world, "100")
    await _fill_cart(client, world, keys["employee"], 3)

    response = await _checkout(client, world, keys["employee"])

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "BUDGET_EXCEEDED"
    cart = await client.get("/cart", params={"company_id": world.company.id}, headers=keys["employee"])
    assert len(cart.json()) == 1


@pytest.mark.anyio("asyncio")
async def test_reject_requires_reason_over_http(client, world, keys, fund_member):
    fund_member(world, "500")
    await _fill_cart(client, world, keys["employee"], 1)
    order = (await _checkout(client, world, keys["employee"])).json()

    blank = await client.post(f"/approvals/{order['id']}/reject", json={"reason": " "}, headers=keys["admin"])
    assert blank.status_code == 400
    assert blank.json()["error"]["code"] == "REJECTION_REASON_REQUIRED"

    rejected = await client.post(
        f"/approvals/{order['id']}/reject", json={"reason": "Duplicate"}, headers=keys["admin"]
    )
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejection_reason"] == "Duplicate"


@pytest.mark.anyio("asyncio")
async def test_bulk_endpoints_report_per_order(client, world, keys, fund_member, place_order):
    fund_member(world, "200")
    first = place_order(world, world.employee, 2)
    second = place_order(world, world.employee, 3)

    approved = await client.post(
        "/approvals/bulk-approve",
        json={"order_ids": [first.id, second.id, 424242]},
        headers=keys["admin"],
    )
    assert approved.status_code == 200
    body = approved.json()
    assert body["succeeded"] == 1
    assert body["failed"] == 2
    assert [row["error_code"] for row in body["results"]] == [None, "BUDGET_EXCEEDED", "ORDER_NOT_FOUND"]

    cancelled = await client.post(
        "/orders/bulk-status",
        json={"order_ids": [first.id, second.id], "status": "cancelled", "reason": "Freeze"},
        headers=keys["admin"],
    )
    results = cancelled.json()["results"]
    assert results[0]["success"] is True
    assert results[1]["error_code"] == "INVALID_TRANSITION"

    empty = await client.post("/approvals/bulk-approve", json={"order_ids": []}, headers=keys["admin"])
    assert empty.status_code == 400


@pytest.mark.anyio("asyncio")
async def test_order_hidden_from_other_employees(
    client, db_session, world, keys, fund_member, place_order, add_employee, make_api_key
):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)
    _, outsider = add_employee(world)
    headers = make_api_key(db_session.get(User, outsider.user_id))

    response = await client.get(f"/orders/{order.id}", headers=headers)
    assert response.status_code == 404

    own = await client.get(f"/orders/{order.id}", headers=keys["employee"])
    assert own.status_code == 200
    vendor_view = await client.get(f"/orders/{order.id}", headers=keys["vendor"])
    assert vendor_view.status_code == 200


@pytest.mark.anyio("asyncio")
async def test_reports_over_http(client, db_session, world, keys, fund_member, place_order):
    fund_member(world, "500")
    place_order(world, world.employee, 2, approve=True)
    place_order(world, world.employee, 1)
    process_scheduled_tasks_once(db_session=db_session)

    order_report = await client.get(
        "/reports/orders", params={"company_id": world.company.id}, headers=keys["admin"]
    )
    assert order_report.status_code == 200
    summary = order_report.json()["summary"]
    assert summary["total_orders"] == 2
    assert Decimal(summary["total_amount"]) == Decimal("150.00")
    assert summary["status_breakdown"] == {"confirmed": 1, "pending_approval": 1}
    assert summary["department_breakdown"] == {"Sales": 2}

    vendor_report = await client.get(
        "/reports/vendors", params={"company_id": world.company.id}, headers=keys["admin"]
    )
    assert vendor_report.status_code == 200
    body = vendor_report.json()
    assert len(body["purchase_orders"]) == 1
    assert body["vendor_performance"][0]["vendor_name"] == "Print Shop"

    forbidden = await client.get(
        "/reports/orders", params={"company_id": world.company.id}, headers=keys["employee"]
    )
    assert forbidden.status_code == 403

    reversed_window = await client.get(
        "/reports/orders",
        params={
            "company_id": world.company.id,
            "start_date": "2026-02-01T00:00:00Z",
            "end_date": "2026-01-01T00:00:00Z",
        },
        headers=keys["admin"],
    )
    assert reversed_window.status_code == 400
    assert reversed_window.json()["error"]["code"] == "VALIDATION_ERROR"
