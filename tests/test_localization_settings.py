import json


async def seed_languages(client, admin_headers):
    response = await client.post("/api/v1/localization/seed", headers=admin_headers)
    assert response.status_code == 200
    return response.json()["data"]["count"]


async def test_seed_is_idempotent(client, admin_headers):
    assert await seed_languages(client, admin_headers) > 0
    assert await seed_languages(client, admin_headers) == 0

    response = await client.get("/api/v1/localization/languages")
    assert [lang["code"] for lang in response.json()["data"]] == ["en", "vi"]

    response = await client.get("/api/v1/localization/languages/default")
    assert response.json()["data"]["code"] == "en"


async def test_public_translation_reads(client, admin_headers):
    await seed_languages(client, admin_headers)

    response = await client.get("/api/v1/localization/translations/vi/common.save")
    data = response.json()["data"]
    assert data["value"] == "Lưu"
    assert data["category"] == "common"
    assert data["language_code"] == "vi"

    response = await client.get("/api/v1/localization/resources/en")
    resources = response.json()["data"]["resources"]
    assert resources["common"]["common.save"] == "Save"
    assert resources["auth"]["auth.login"] == "Login"

    response = await client.get("/api/v1/localization/translations/en", params={"category": "rooms"})
    assert all(t["category"] == "rooms" for t in response.json()["data"])

    response = await client.get("/api/v1/localization/resources/fr")
    assert response.status_code == 404


async def test_translation_upsert_and_delete(client, admin_headers, manager_headers, staff_headers):
    await seed_languages(client, admin_headers)
    entry = {"key": "common.save", "value": "Save changes", "category": "common"}

    response = await client.put("/api/v1/localization/translations/en", json=entry, headers=staff_headers)
    assert response.status_code == 403

    response = await client.put("/api/v1/localization/translations/en", json=entry, headers=manager_headers)
    assert response.json()["data"]["value"] == "Save changes"
    assert response.json()["data"]["language_code"] == "en"

    response = await client.post(
        "/api/v1/localization/translations/bulk",
        json={"language_code": "en", "translations": {"reports.title": "Reports", "reports.export": "Export"}, "category": "reports"},
        headers=manager_headers,
    )
    assert response.json()["data"] == {"count": 2, "keys": ["reports.title", "reports.export"]}

    response = await client.get("/api/v1/localization/resources/en")
    assert response.json()["data"]["resources"]["reports"] == {"reports.export": "Export", "reports.title": "Reports"}

    response = await client.delete("/api/v1/localization/translations/en/reports.title", headers=manager_headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/localization/translations/en/reports.title")
    assert response.status_code == 404

    response = await client.put("/api/v1/localization/translations/de", json=entry, headers=manager_headers)
    assert response.status_code == 404


async def test_default_language_rules(client, admin_headers):
    await seed_languages(client, admin_headers)

    response = await client.delete("/api/v1/localization/languages/en", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "The default language cannot be deleted"

    response = await client.put("/api/v1/localization/languages/en", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.post("/api/v1/localization/languages/vi/set-default", headers=admin_headers)
    assert response.json()["data"]["is_default"] is True

    response = await client.get("/api/v1/localization/languages/en")
    assert response.json()["data"]["is_default"] is False

    response = await client.delete("/api/v1/localization/languages/en", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/localization/languages")
    assert [lang["code"] for lang in response.json()["data"]] == ["vi"]

    response = await client.get("/api/v1/localization/languages", params={"include_inactive": "true"})
    assert len(response.json()["data"]) == 2

    # soft delete keeps the strings
    response = await client.get("/api/v1/localization/translations/en/common.save")
    assert response.status_code == 200

    response = await client.post("/api/v1/localization/languages/en/set-default", headers=admin_headers)
    assert response.status_code == 400


async def test_create_language(client, admin_headers, manager_headers):
    payload = {"code": "FR", "name": "French", "native_name": "Français"}

    response = await client.post("/api/v1/localization/languages", json=payload, headers=manager_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/localization/languages", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["data"]["code"] == "fr"

    response = await client.post("/api/v1/localization/languages", json=payload, headers=admin_headers)
    assert response.status_code == 409


async def test_settings_crud(client, admin_headers, manager_headers):
    response = await client.get("/api/v1/system/settings", headers=manager_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/system/settings/seed", headers=admin_headers)
    seeded = response.json()["data"]["count"]
    assert seeded > 0

    response = await client.get("/api/v1/system/settings", headers=admin_headers)
    assert len(response.json()["data"]) == seeded

    response = await client.get("/api/v1/system/settings/category/PAYMENT", headers=admin_headers)
    assert {s["key"] for s in response.json()["data"]} == {
        "payment.lateFeeEnabled",
        "payment.lateFeePercentage",
        "payment.gracePeriodDays",
    }

    response = await client.put(
        "/api/v1/system/settings/system.currency",
        json={"value": "EUR"},
        headers=admin_headers,
    )
    data = response.json()["data"]
    assert data["value"] == "EUR"
    assert data["modified_by"] == "admin@rental.com"

    response = await client.post(
        "/api/v1/system/settings",
        json={"key": "system.currency", "value": "VND"},
        headers=admin_headers,
    )
    assert response.status_code == 409

    response = await client.get("/api/v1/system/settings/grouped", headers=admin_headers)
    categories = [group["category"] for group in response.json()["data"]]
    assert categories == sorted(categories)

    response = await client.delete("/api/v1/system/settings/display.theme", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/system/settings/display.theme", headers=admin_headers)
    assert response.status_code == 404


async def test_locked_and_hidden_settings(client, admin_headers):
    locked = {"key": "billing.prefix", "value": "INV", "is_editable": False, "is_visible": False}
    response = await client.post("/api/v1/system/settings", json=locked, headers=admin_headers)
    assert response.status_code == 201

    response = await client.get("/api/v1/system/settings", headers=admin_headers)
    assert response.json()["data"] == []

    response = await client.get("/api/v1/system/settings", params={"include_hidden": "true"}, headers=admin_headers)
    assert len(response.json()["data"]) == 1

    response = await client.put("/api/v1/system/settings/billing.prefix", json={"value": "BILL"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Setting 'billing.prefix' is not editable"

    response = await client.delete("/api/v1/system/settings/billing.prefix", headers=admin_headers)
    assert response.status_code == 400

    response = await client.put(
        "/api/v1/system/settings/bulk",
        json={"settings": {"billing.prefix": "BILL", "unknown.key": "x"}},
        headers=admin_headers,
    )
    assert response.json()["data"]["count"] == 0


async def test_settings_export_import(client, admin_headers):
    await client.post("/api/v1/system/settings/seed", headers=admin_headers)
    await client.post(
        "/api/v1/system/settings",
        json={"key": "billing.prefix", "value": "INV", "is_editable": False},
        headers=admin_headers,
    )

    response = await client.get("/api/v1/system/settings/export", headers=admin_headers)
    assert response.headers["content-type"].startswith("application/json")
    assert "attachment" in response.headers["content-disposition"]
    rows = json.loads(response.text)

    for row in rows:
        row["value"] = "changed"
    rows.append({"key": "custom.flag", "value": "true", "data_type": "boolean"})

    response = await client.post(
        "/api/v1/system/settings/import",
        json={"json_data": json.dumps(rows)},
        headers=admin_headers,
    )
    # every editable key is updated, the new key is created, the locked key is skipped
    assert response.json()["data"]["count"] == len(rows) - 1

    response = await client.get("/api/v1/system/settings/billing.prefix", headers=admin_headers)
    assert response.json()["data"]["value"] == "INV"

    response = await client.get("/api/v1/system/settings/custom.flag", headers=admin_headers)
    assert response.json()["data"]["data_type"] == "boolean"

    response = await client.post(
        "/api/v1/system/settings/import",
        json={"json_data": "not json"},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_system_and_database_info(client, admin_headers, room):
    response = await client.get("/api/v1/system/info", headers=admin_headers)
    info = response.json()["data"]
    assert info["database_dialect"] == "sqlite"
    assert info["total_users"] == 3
    assert info["total_rooms"] == 1

    response = await client.get("/api/v1/system/database/info", headers=admin_headers)
    db_info = response.json()["data"]
    assert db_info["connected"] is True
    tables = {table["name"]: table["row_count"] for table in db_info["tables"]}
    assert tables["roles"] == 3
    assert tables["rooms"] == 1

    response = await client.get("/api/v1/system/database/test-connection", headers=admin_headers)
    assert response.json()["data"] is True

    response = await client.post("/api/v1/system/database/seed", headers=admin_headers)
    result = response.json()["data"]
    assert result["roles"] == 0
    assert result["settings"] > 0
