from datetime import date, timedelta


ELECTRICITY = {
    "item_code": "ELEC",
    "name": "Electricity",
    "unit_of_measure": "kWh",
    "unit_price": "0.25",
    "tax_percent": "8",
    "category": "Utilities",
}


async def test_item_catalogue(client, staff_headers, admin_headers):
    response = await client.post("/api/v1/items", json=ELECTRICITY, headers=staff_headers)
    assert response.status_code == 201
    item = response.json()["data"]
    assert item["unit_price"] == 0.25
    assert item["is_active"] is True

    response = await client.post("/api/v1/items", json=ELECTRICITY, headers=staff_headers)
    assert response.status_code == 409

    await client.post(
        "/api/v1/items",
        json={"item_code": "CLEAN", "name": "Cleaning", "unit_price": "15", "category": "Services", "is_active": False},
        headers=staff_headers,
    )

    response = await client.get("/api/v1/items", params={"search": "elec"}, headers=staff_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/api/v1/items/active", headers=staff_headers)
    assert [i["item_code"] for i in response.json()["data"]] == ["ELEC"]

    response = await client.get("/api/v1/items/categories", headers=staff_headers)
    assert response.json()["data"] == ["Utilities"]

    response = await client.get("/api/v1/items/category/Utilities", headers=staff_headers)
    assert len(response.json()["data"]) == 1

    response = await client.put(f"/api/v1/items/{item['id']}", json={"unit_price": "0.30"}, headers=staff_headers)
    assert response.json()["data"]["unit_price"] == 0.3

    response = await client.delete(f"/api/v1/items/{item['id']}", headers=staff_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/items/{item['id']}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/items/{item['id']}", headers=staff_headers)
    assert response.status_code == 404


async def test_used_item_cannot_be_deleted(client, staff_headers, admin_headers, tenant):
    item = (await client.post("/api/v1/items", json=ELECTRICITY, headers=staff_headers)).json()["data"]

    response = await client.post(
        "/api/v1/invoices",
        json={
            "tenant_id": str(tenant.id),
            "billing_period": date.today().isoformat(),
            "due_date": (date.today() + timedelta(days=10)).isoformat(),
            "items": [{"item_id": item["id"], "quantity": "100"}],
        },
        headers=staff_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["additional_charges"] == 27.0

    response = await client.delete(f"/api/v1/items/{item['id']}", headers=admin_headers)
    assert response.status_code == 400
