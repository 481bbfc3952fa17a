from datetime import date, timedelta
from decimal import Decimal

from rentals.models.room import Room
from rentals.models.tenant import Tenant


ROOM = {"room_number": "201", "type": "DOUBLE", "monthly_rent": "1500.00", "floor": 2, "has_air_conditioning": True}

TENANT = {
    "first_name": "Ann",
    "last_name": "Lee",
    "email": "Ann.Lee@Example.com",
    "phone_number": "0911222333",
}


def contract(days: int = 365) -> dict:
    return {
        "contract_start_date": date.today().isoformat(),
        "contract_end_date": (date.today() + timedelta(days=days)).isoformat(),
    }


async def test_room_crud_and_roles(client, manager_headers, staff_headers, admin_headers):
    response = await client.post("/api/v1/rooms", json=ROOM, headers=staff_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/rooms", json=ROOM, headers=manager_headers)
    assert response.status_code == 201
    room = response.json()["data"]
    assert room["status"] == "VACANT"
    assert room["is_available"] is True
    assert room["monthly_rent"] == 1500.0

    response = await client.post("/api/v1/rooms", json=ROOM, headers=manager_headers)
    assert response.status_code == 409

    response = await client.put(f"/api/v1/rooms/{room['id']}", json={"monthly_rent": "1600"}, headers=manager_headers)
    assert response.json()["data"]["monthly_rent"] == 1600.0

    response = await client.patch(
        f"/api/v1/rooms/{room['id']}/status",
        json={"status": "MAINTENANCE"},
        headers=staff_headers,
    )
    assert response.json()["data"]["status"] == "MAINTENANCE"

    response = await client.delete(f"/api/v1/rooms/{room['id']}", headers=manager_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/rooms/{room['id']}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/rooms/{room['id']}", headers=staff_headers)
    assert response.status_code == 404


async def test_room_listing(client, manager_headers, staff_headers, room):
    await client.post("/api/v1/rooms", json=ROOM, headers=manager_headers)

    response = await client.get("/api/v1/rooms", params={"type": "DOUBLE"}, headers=staff_headers)
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["room_number"] == "201"

    response = await client.get("/api/v1/rooms", params={"size": 1}, headers=staff_headers)
    page = response.json()["data"]
    assert page["total"] == 2
    assert page["pages"] == 2
    assert page["has_next"] is True
    assert page["items"][0]["room_number"] == "101"

    response = await client.get("/api/v1/rooms", params={"max_rent": "1200"}, headers=staff_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/v1/rooms/available", headers=staff_headers)
    assert len(response.json()["data"]) == 2

    response = await client.get("/api/v1/rooms/status/VACANT", headers=staff_headers)
    assert len(response.json()["data"]) == 2


async def test_room_statistics(client, manager_headers, tenant):
    await client.post("/api/v1/rooms", json=ROOM, headers=manager_headers)

    response = await client.get("/api/v1/rooms/statistics", headers=manager_headers)
    stats = response.json()["data"]
    assert stats["total_rooms"] == 2
    assert stats["rented_rooms"] == 1
    assert stats["vacant_rooms"] == 1
    assert stats["occupancy_rate"] == 50.0
    assert stats["potential_monthly_revenue"] == 2500.0
    assert stats["current_monthly_revenue"] == 1000.0
    assert stats["rooms_by_type"] == {"SINGLE": 1, "DOUBLE": 1}


async def test_rented_room_keeps_status(client, staff_headers, admin_headers, room, tenant):
    response = await client.patch(f"/api/v1/rooms/{room.id}/status", json={"status": "VACANT"}, headers=staff_headers)
    assert response.status_code == 400

    response = await client.delete(f"/api/v1/rooms/{room.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete room with active tenants"


async def test_tenant_lifecycle(client, staff_headers, manager_headers, admin_headers, room):
    response = await client.post("/api/v1/tenants", json=TENANT, headers=staff_headers)
    assert response.status_code == 201
    tenant = response.json()["data"]
    assert tenant["email"] == "ann.lee@example.com"
    assert tenant["full_name"] == "Ann Lee"
    assert tenant["room_id"] is None

    response = await client.post("/api/v1/tenants", json={**TENANT, "email": "ANN.LEE@example.com"}, headers=staff_headers)
    assert response.status_code == 409

    response = await client.post(
        f"/api/v1/tenants/{tenant['id']}/assign-room",
        json={"room_id": str(room.id), **contract()},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assigned = response.json()["data"]
    assert assigned["room_number"] == "101"
    assert assigned["monthly_rent"] == 1000.0
    assert assigned["has_active_contract"] is True

    room_data = (await client.get(f"/api/v1/rooms/{room.id}", headers=staff_headers)).json()["data"]
    assert room_data["status"] == "RENTED"

    response = await client.get(f"/api/v1/tenants/room/{room.id}", headers=staff_headers)
    assert [t["id"] for t in response.json()["data"]] == [tenant["id"]]

    response = await client.post(f"/api/v1/tenants/{tenant['id']}/unassign-room", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["data"]["room_id"] is None

    room_data = (await client.get(f"/api/v1/rooms/{room.id}", headers=staff_headers)).json()["data"]
    assert room_data["status"] == "VACANT"

    response = await client.delete(f"/api/v1/tenants/{tenant['id']}", headers=manager_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/tenants/{tenant['id']}", headers=admin_headers)
    assert response.status_code == 200


async def test_assign_room_rules(client, staff_headers, room, tenant):
    response = await client.post("/api/v1/tenants", json=TENANT, headers=staff_headers)
    newcomer = response.json()["data"]

    response = await client.post(
        f"/api/v1/tenants/{newcomer['id']}/assign-room",
        json={"room_id": str(room.id), **contract()},
        headers=staff_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Room 101 is not available"

    response = await client.post(
        f"/api/v1/tenants/{newcomer['id']}/assign-room",
        json={"room_id": str(room.id), "contract_start_date": date.today().isoformat(), "contract_end_date": date.today().isoformat()},
        headers=staff_headers,
    )
    assert response.status_code == 422


async def test_outstanding_invoice_blocks_move_out(client, staff_headers, admin_headers, tenant, invoice):
    response = await client.post(f"/api/v1/tenants/{tenant.id}/unassign-room", headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot unassign tenant with outstanding invoices"

    response = await client.delete(f"/api/v1/tenants/{tenant.id}", headers=admin_headers)
    assert response.status_code == 400


async def test_tenant_queries(client, staff_headers, manager_headers, tenant):
    await client.post("/api/v1/tenants", json=TENANT, headers=staff_headers)

    response = await client.get("/api/v1/tenants", params={"search": "jane"}, headers=staff_headers)
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["room_number"] == "101"

    response = await client.get("/api/v1/tenants", params={"has_room": "false"}, headers=staff_headers)
    assert response.json()["data"]["items"][0]["email"] == "ann.lee@example.com"

    response = await client.get("/api/v1/tenants/unassigned", headers=staff_headers)
    assert len(response.json()["data"]) == 1

    response = await client.get("/api/v1/tenants/active", headers=staff_headers)
    assert len(response.json()["data"]) == 2

    response = await client.put(f"/api/v1/tenants/{tenant.id}", json={"phone_number": "0999888777"}, headers=staff_headers)
    assert response.json()["data"]["phone_number"] == "0999888777"

    response = await client.get("/api/v1/tenants/statistics", headers=manager_headers)
    stats = response.json()["data"]
    assert stats["total_tenants"] == 2
    assert stats["tenants_with_room"] == 1
    assert stats["tenants_without_room"] == 1
    assert stats["total_security_deposits"] == 500.0


async def test_shared_room_stays_rented_until_last_tenant_leaves(client, staff_headers, db, room, tenant):
    roommate = Tenant(
        first_name="Sam",
        last_name="Roe",
        email="sam.roe@example.com",
        phone_number="0900000002",
        room_id=room.id,
        monthly_rent=Decimal("500.00"),
        is_active=True,
    )
    other_room = Room(room_number="102", type="SINGLE", monthly_rent=Decimal("900.00"), floor=1)
    db.add_all([roommate, other_room])
    await db.commit()

    response = await client.post(
        f"/api/v1/tenants/{tenant.id}/assign-room",
        json={"room_id": str(other_room.id), **contract()},
        headers=staff_headers,
    )
    assert response.status_code == 200

    shared = (await client.get(f"/api/v1/rooms/{room.id}", headers=staff_headers)).json()["data"]
    assert shared["status"] == "RENTED"

    response = await client.post(f"/api/v1/tenants/{roommate.id}/unassign-room", headers=staff_headers)
    assert response.status_code == 200

    shared = (await client.get(f"/api/v1/rooms/{room.id}", headers=staff_headers)).json()["data"]
    assert shared["status"] == "VACANT"
