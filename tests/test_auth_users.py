PASSWORD = "Secret@123"


async def login(client, email, password=PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


async def test_login_refresh_and_me(client, users):
    response = await login(client, "manager@rental.com")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    tokens = body["data"]
    assert tokens["token_type"] == "bearer"
    assert tokens["user"]["roles"] == ["MANAGER"]

    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    me = response.json()["data"]
    assert me["email"] == "manager@rental.com"
    assert me["full_name"] == "Manager User"
    assert me["last_login_at"] is not None

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert response.json()["data"]["access_token"]

    # an access token is not accepted as a refresh token
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


async def test_login_failures(client, users):
    response = await login(client, "manager@rental.com", "wrong-password")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "data": None,
        "message": "Invalid email or password",
        "errors": ["Invalid email or password"],
    }

    response = await login(client, "nobody@rental.com")
    assert response.status_code == 401


async def test_invalid_token_is_rejected(client):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_profile_and_password(client, staff_headers):
    response = await client.put("/api/v1/auth/me", json={"phone": "0901234567"}, headers=staff_headers)
    assert response.json()["data"]["phone"] == "0901234567"

    response = await client.put("/api/v1/auth/me", json={"email": "admin@rental.com"}, headers=staff_headers)
    assert response.status_code == 409

    response = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "not-mine", "new_password": "Changed@123"},
        headers=staff_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Changed@123"},
        headers=staff_headers,
    )
    assert response.status_code == 200

    assert (await login(client, "staff@rental.com")).status_code == 401
    assert (await login(client, "staff@rental.com", "Changed@123")).status_code == 200


async def test_register_is_admin_only(client, admin_headers, manager_headers):
    payload = {"email": "New.Clerk@rental.com", "password": "Clerk@123", "first_name": "New"}

    response = await client.post("/api/v1/auth/register", json=payload, headers=manager_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 201
    user = response.json()["data"]
    assert user["email"] == "new.clerk@rental.com"
    assert user["roles"] == ["STAFF"]

    response = await client.post("/api/v1/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 409

    response = await client.post(
        "/api/v1/auth/register",
        json={**payload, "email": "other@rental.com", "roles": ["OWNER"]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Unknown roles: OWNER"


async def test_user_listing_and_statistics(client, admin_headers, manager_headers, staff_headers):
    response = await client.get("/api/v1/users", params={"role": "staff"}, headers=manager_headers)
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["email"] == "staff@rental.com"

    response = await client.get("/api/v1/users", headers=staff_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/users/roles", headers=manager_headers)
    assert [role["code"] for role in response.json()["data"]] == ["ADMIN", "MANAGER", "STAFF"]

    response = await client.get("/api/v1/users/statistics", headers=admin_headers)
    stats = response.json()["data"]
    assert stats["total_users"] == 3
    assert stats["new_users_last_30_days"] == 3
    assert stats["users_by_role"] == {"ADMIN": 1, "MANAGER": 1, "STAFF": 1}


async def test_admin_cannot_remove_self(client, admin_headers, users):
    admin_id = users["ADMIN"].id

    response = await client.delete(f"/api/v1/users/{admin_id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "You cannot delete your own account"

    response = await client.post(f"/api/v1/users/{admin_id}/activation", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.request(
        "DELETE", f"/api/v1/users/{admin_id}/roles", json={"roles": ["ADMIN"]}, headers=admin_headers
    )
    assert response.status_code == 403


async def test_deactivated_user_is_locked_out(client, admin_headers, staff_headers, users):
    staff_id = users["STAFF"].id

    response = await client.post(f"/api/v1/users/{staff_id}/activation", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False

    response = await client.get("/api/v1/auth/me", headers=staff_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "User account is deactivated"

    assert (await login(client, "staff@rental.com")).status_code == 401


async def test_role_changes_keep_one_role(client, admin_headers, users):
    manager_id = users["MANAGER"].id

    response = await client.request(
        "DELETE", f"/api/v1/users/{manager_id}/roles", json={"roles": ["MANAGER"]}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "A user must keep at least one role"

    response = await client.post(f"/api/v1/users/{manager_id}/roles", json={"roles": ["staff"]}, headers=admin_headers)
    assert sorted(response.json()["data"]["roles"]) == ["MANAGER", "STAFF"]

    response = await client.request(
        "DELETE", f"/api/v1/users/{manager_id}/roles", json={"roles": ["MANAGER"]}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["roles"] == ["STAFF"]


async def test_admin_user_maintenance(client, admin_headers, users):
    staff_id = users["STAFF"].id

    response = await client.put(f"/api/v1/users/{staff_id}", json={"last_name": "Clerk"}, headers=admin_headers)
    assert response.json()["data"]["full_name"] == "Staff Clerk"

    response = await client.put(f"/api/v1/users/{staff_id}", json={"email": "MANAGER@rental.com"}, headers=admin_headers)
    assert response.status_code == 409

    response = await client.post(
        f"/api/v1/users/{staff_id}/reset-password",
        json={"new_password": "Reset@123"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert (await login(client, "staff@rental.com", "Reset@123")).status_code == 200

    response = await client.delete(f"/api/v1/users/{staff_id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/users/{staff_id}", headers=admin_headers)
    assert response.status_code == 404


async def test_bulk_operation_skips_acting_admin(client, admin_headers, users):
    ids = [str(user.id) for user in users.values()]

    response = await client.post(
        "/api/v1/users/bulk",
        json={"user_ids": ids, "operation": "deactivate"},
        headers=admin_headers,
    )
    assert response.json()["data"] == {"affected": 2}

    response = await client.get("/api/v1/users", params={"is_active": "false"}, headers=admin_headers)
    assert response.json()["data"]["total"] == 2
