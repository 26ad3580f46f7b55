"""HTTP tests: routing, engine error mapping and the error envelope."""

import httpx
import pytest

from printshop.api.main import app
from printshop.core.deps import get_session
from tests.fakes import add_composition, add_material


@pytest.fixture
async def client(session_maker):
    async def _session_override():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


ORDER_PAYLOAD = {
    "customer_name": "Anna",
    "items": [{"type": "Flyers", "params": {"description": "A5 flyers"}, "price": 2, "quantity": 10}],
}


class TestHealth:

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")

        assert resp.status_code == 200
        assert resp.json()["message"] == "Healthy"
        assert resp.headers["X-Correlation-ID"]

    async def test_readiness_queries_database(self, client):
        resp = await client.get("/api/v1/health/ready", headers={"X-Correlation-ID": "req-42"})

        assert resp.status_code == 200
        assert resp.json()["message"] == "Ready"
        assert resp.headers["X-Correlation-ID"] == "req-42"


class TestOrdersApi:

    async def test_create_and_fetch(self, client):
        created = await client.post("/api/v1/orders/with-reservation", json=ORDER_PAYLOAD, headers={"X-User-ID": "4"})
        assert created.status_code == 201
        order_id = created.json()["id"]
        assert created.json()["user_id"] == 4

        fetched = await client.get(f"/api/v1/orders/{order_id}")

        assert fetched.status_code == 200
        body = fetched.json()
        assert body["uid"] == f"order:{order_id}"
        assert body["total_amount"] == 20
        assert body["items"][0]["params"] == {"description": "A5 flyers"}

    async def test_status_change_and_listing(self, client):
        order_id = (await client.post("/api/v1/orders", json={"customer_name": "Boris"})).json()["id"]

        resp = await client.put(f"/api/v1/orders/{order_id}/status", json={"status": 2})
        listed = await client.get("/api/v1/orders")

        assert resp.status_code == 200
        assert resp.json()["status"] == 2
        assert [o["id"] for o in listed.json()] == [order_id]

    async def test_search_by_min_amount(self, client):
        await client.post("/api/v1/orders/with-reservation", json=ORDER_PAYLOAD)

        resp = await client.get("/api/v1/orders/search", params={"min_amount": 50})

        assert resp.status_code == 200
        assert resp.json() == []

    async def test_export_csv(self, client):
        await client.post("/api/v1/orders/with-reservation", json=ORDER_PAYLOAD)

        resp = await client.get("/api/v1/orders/export", params={"format": "csv"})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.text.splitlines()[0].startswith("ID,Number")


class TestErrorMapping:

    async def test_missing_order_is_404(self, client):
        resp = await client.put("/api/v1/orders/999/status", json={"status": 3})

        assert resp.status_code == 404
        body = resp.json()
        assert body["error"]["type"] == "not_found"
        assert body["path"] == "/api/v1/orders/999/status"

    async def test_unknown_status_value_is_422(self, client):
        order = (await client.post("/api/v1/orders", json={"customer_name": "Anna"})).json()

        single = await client.put(f"/api/v1/orders/{order['id']}/status", json={"status": 42})
        bulk = await client.post(
            "/api/v1/orders/bulk/status", json={"order_ids": [order["id"]], "status": 7}
        )

        for resp in (single, bulk):
            assert resp.status_code == 422
            assert resp.json()["error"]["type"] == "validation_error"
        fetched = (await client.get(f"/api/v1/orders/{order['id']}")).json()
        assert fetched["status"] == 1

    async def test_empty_bulk_is_400(self, client):
        resp = await client.post("/api/v1/orders/bulk/delete", json={"order_ids": []})

        assert resp.status_code == 400
        assert resp.json()["error"]["type"] == "invalid_request"

    async def test_bad_owner_header_is_400(self, client):
        resp = await client.get("/api/v1/orders", headers={"X-User-ID": "abc"})

        assert resp.status_code == 400

    async def test_failed_deduction_lists_every_reason(self, client, session):
        paper = await add_material(session, "Paper-150", 3)
        await add_composition(session, "Flyers", "A5 flyers", paper.id, 1)

        resp = await client.post("/api/v1/orders/with-auto-deduction", json=ORDER_PAYLOAD)

        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["type"] == "deduction_failed"
        assert len(error["details"]) == 1
        assert "not enough Paper-150" in error["details"][0]
        assert (await client.get("/api/v1/orders")).json() == []


class TestInventoryAndNotificationsApi:

    async def test_adjust_and_list_moves(self, client, session):
        paper = await add_material(session, "Paper-150", 10)

        resp = await client.post(f"/api/v1/inventory/materials/{paper.id}/adjust", json={"delta": 5})
        moves = await client.get("/api/v1/inventory/moves", params={"material_id": paper.id})

        assert resp.status_code == 201
        assert [m["delta"] for m in moves.json()] == [5]

    async def test_rule_then_check(self, client):
        rule = await client.post(
            "/api/v1/notifications/rules",
            json={
                "name": "Ready",
                "order_type": "website",
                "status_to": 3,
                "message_template": "Order {orderNumber} is {status}",
            },
        )
        order_id = (await client.post("/api/v1/orders", json={})).json()["id"]
        await client.put(f"/api/v1/orders/{order_id}/status", json={"status": 3})

        summary = await client.post("/api/v1/notifications/check")
        logs = await client.get("/api/v1/notifications/logs")

        assert rule.status_code == 201
        assert summary.json()["sent"] == 1
        assert [entry["status"] for entry in logs.json()] == ["sent"]
