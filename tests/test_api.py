"""Tests API / API tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from fleetmaint.database import get_db
from fleetmaint.main import app


@pytest.fixture
async def client(session_factory, seed):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-ID": str(seed.supervisor_id)},
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


PLAN = {
    "name": "Plan Camion",
    "vehicle_type": "CAMION",
    "intervals": [
        {"hours": 500, "kilometers": 20000, "ref": "tmp-1"},
        {"hours": 1000, "kilometers": 40000, "ref": "tmp-2"},
    ],
    "activities": [
        {"code": "ACE-01", "description": "Cambio de aceite", "category": "Motor",
         "interval_refs": ["tmp-1", "tmp-2"]},
        {"code": "FIL-01", "description": "Filtro de aire", "category": "Motor", "interval_refs": ["tmp-2"]},
    ],
}


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/api/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "running"
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_missing_user_header(client):
    resp = await client.get("/api/maintenance/plans/", headers={"X-User-ID": ""})
    assert resp.status_code in (401, 422)


@pytest.mark.asyncio
async def test_unknown_user(client):
    resp = await client.get("/api/maintenance/plans/", headers={"X-User-ID": "9999"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_plan_lifecycle(client):
    resp = await client.post("/api/maintenance/plans/", json=PLAN)
    assert resp.status_code == 201
    plan = resp.json()
    assert [i["sequence_order"] for i in plan["intervals"]] == [1, 2]
    assert len(plan["activities"]) == 2

    resp = await client.get("/api/maintenance/plans/")
    assert resp.status_code == 200
    assert resp.json()[0]["interval_count"] == 2

    resp = await client.delete(f"/api/maintenance/plans/{plan['id']}")
    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"

    resp = await client.post(f"/api/maintenance/plans/{plan['id']}/duplicate", json={"name": "Copia 2"})
    assert resp.status_code == 201
    copy = resp.json()
    assert copy["name"] == "Copia 2"
    assert copy["is_active"] is False

    resp = await client.put(f"/api/maintenance/plans/{plan['id']}", json={"description": "Flota pesada"})
    assert resp.status_code == 200
    assert resp.json()["description"] == "Flota pesada"

    resp = await client.post(f"/api/maintenance/plans/{plan['id']}/deactivate")
    assert resp.json()["is_active"] is False
    resp = await client.delete(f"/api/maintenance/plans/{plan['id']}")
    assert resp.status_code == 204
    resp = await client.get(f"/api/maintenance/plans/{plan['id']}")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_empty_plan_is_rejected(client):
    resp = await client.post("/api/maintenance/plans/", json={"name": "Vacio"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_next_maintenance(client, seed):
    resp = await client.get(f"/api/maintenance/vehicles/{seed.truck_id}/next-maintenance")
    assert resp.status_code == 200
    assert resp.json()["has_plan"] is False

    await client.post("/api/maintenance/plans/", json=PLAN)
    resp = await client.get(f"/api/maintenance/vehicles/{seed.truck_id}/next-maintenance")
    data = resp.json()
    assert data["has_plan"] is True
    assert data["intervals"][0]["is_due"] is True
    assert [a["code"] for a in data["applicable_activities"]] == ["ACE-01"]


@pytest.mark.asyncio
async def test_work_order_flow(client, seed):
    await client.post("/api/maintenance/plans/", json=PLAN)

    resp = await client.post(
        "/api/maintenance/work-orders/",
        json={"vehicle_id": seed.truck_id, "type": "PREVENTIVE", "odometer_at_start": 20500},
    )
    assert resp.status_code == 201
    order = resp.json()
    assert order["number"] == "WO-000001"
    assert order["status"] == "PENDING"
    [item] = order["items"]

    resp = await client.post(f"/api/maintenance/work-orders/{order['id']}/close")
    assert resp.status_code == 409

    resp = await client.post(f"/api/maintenance/work-orders/{order['id']}/start")
    assert resp.json()["status"] == "IN_PROGRESS"

    resp = await client.put(
        f"/api/maintenance/work-orders/{order['id']}/items/{item['id']}",
        json={"status": "COMPLETED", "cost": 80.25},
    )
    assert resp.status_code == 200
    assert resp.json()["completed_at"] is not None

    resp = await client.post(
        f"/api/maintenance/work-orders/{order['id']}/close",
        json={"notes": "OK"},
        headers={"User-Agent": "taller-app/1.0", "X-Forwarded-For": "192.168.1.20"},
    )
    assert resp.status_code == 200
    closed = resp.json()
    assert closed["status"] == "COMPLETED"
    assert closed["total_cost"] == 80.25
    [signature] = closed["signatures"]
    assert signature["signature_type"] == "SUPERVISOR"
    assert signature["ip_address"] == "192.168.1.20"
    assert signature["user_agent"] == "taller-app/1.0"

    resp = await client.post(f"/api/maintenance/work-orders/{order['id']}/cancel", json={"reason": "x"})
    assert resp.status_code == 409

    resp = await client.get("/api/maintenance/work-orders/", params={"status": "COMPLETED"})
    page = resp.json()
    assert page["meta"]["total"] == 1
    assert page["data"][0]["item_count"] == 1


@pytest.mark.asyncio
async def test_external_order_without_workshop(client, seed):
    resp = await client.post(
        "/api/maintenance/work-orders/",
        json={"vehicle_id": seed.truck_id, "type": "CORRECTIVE", "is_internal": False},
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"
