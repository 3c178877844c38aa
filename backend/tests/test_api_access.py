"""Authentication, roles and users over HTTP."""

from estatedesk.core.config import settings


def register(client, headers, role_id, email="clerk@estatedesk.in", **extra):
    payload = {"name": "Desk Clerk", "email": email, "role_id": role_id}
    payload.update(extra)
    return client.post("/api/v1/register", json=payload, headers=headers)


def login(client, email, password):
    response = client.post("/api/v1/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login_rejects_bad_password(client):
    response = client.post(
        "/api/v1/login",
        json={"email": settings.SUPER_ADMIN_EMAIL, "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.json() == {"status": False, "message": "Invalid email or password"}


def test_routes_require_a_token(client):
    response = client.get("/api/v1/customers")
    assert response.status_code == 401
    assert response.json()["status"] is False


def test_profile(client, admin_headers):
    response = client.get("/api/v1/profile", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == settings.SUPER_ADMIN_EMAIL
    assert data["role_name"] == "Super Admin"


def test_super_admin_role_is_protected(client, admin_headers, role):
    listed = client.get("/api/v1/roles", headers=admin_headers).json()["data"]
    assert [r["id"] for r in listed] == [role.id]

    assert client.get("/api/v1/roles/1", headers=admin_headers).status_code == 403
    assert client.put("/api/v1/roles/1", json={"role_name": "Root"}, headers=admin_headers).status_code == 403

    response = client.delete("/api/v1/roles/1", headers=admin_headers)
    assert response.status_code == 403
    assert response.json() == {"status": False, "message": "Super Admin role cannot be deleted."}


def test_role_lifecycle(client, admin_headers):
    created = client.post("/api/v1/roles", json={"role_name": "Site Manager"}, headers=admin_headers)
    assert created.status_code == 201
    role_id = created.json()["data"]["id"]

    duplicate = client.post("/api/v1/roles", json={"role_name": "site manager"}, headers=admin_headers)
    assert duplicate.status_code == 422
    assert duplicate.json()["message"] == "The role name has already been taken."

    assert client.delete(f"/api/v1/roles/{role_id}", headers=admin_headers).status_code == 200
    trash = client.get("/api/v1/roles/trash", headers=admin_headers).json()
    assert [r["id"] for r in trash["data"]] == [role_id]
    assert trash["pagination"]["total"] == 1

    updated = client.put(f"/api/v1/roles/{role_id}", json={"role_name": "Renamed"}, headers=admin_headers)
    assert updated.status_code == 400
    assert updated.json()["message"] == "Cannot update a deleted role."

    restored = client.post(f"/api/v1/roles/{role_id}/restore", headers=admin_headers)
    assert restored.status_code == 200
    assert restored.json()["data"]["status"] is True

    again = client.post(f"/api/v1/roles/{role_id}/restore", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Role is already active."


def test_register_returns_default_password(client, admin_headers, role):
    response = register(client, admin_headers, role.id)
    assert response.status_code == 201
    body = response.json()
    assert body["data"]["default_password"] == settings.DEFAULT_USER_PASSWORD
    assert body["data"]["user"]["role_name"] == "Accountant"

    headers = login(client, "clerk@estatedesk.in", settings.DEFAULT_USER_PASSWORD)
    assert client.get("/api/v1/profile", headers=headers).json()["data"]["name"] == "Desk Clerk"


def test_super_admin_role_cannot_be_assigned(client, admin_headers):
    response = register(client, admin_headers, 1)
    assert response.status_code == 403


def test_duplicate_email_is_rejected(client, admin_headers, role):
    register(client, admin_headers, role.id, password="secret123")
    response = register(client, admin_headers, role.id, password="secret123")
    assert response.status_code == 422
    assert response.json()["message"] == "The email has already been taken."


def test_user_listing_hides_the_super_admin(client, admin_headers, role):
    register(client, admin_headers, role.id)
    response = client.get("/api/v1/users", headers=admin_headers)
    assert response.status_code == 200
    emails = [u["email"] for u in response.json()["data"]]
    assert emails == ["clerk@estatedesk.in"]


def test_super_admin_account_is_protected(client, admin_headers):
    response = client.put("/api/v1/users/1", json={"name": "Someone"}, headers=admin_headers)
    assert response.status_code == 403
    response = client.delete("/api/v1/users/1", headers=admin_headers)
    assert response.status_code == 403


def test_only_super_admin_manages_users(client, admin_headers, role):
    register(client, admin_headers, role.id, password="secret123")
    clerk = login(client, "clerk@estatedesk.in", "secret123")

    response = client.get("/api/v1/users", headers=clerk)
    assert response.status_code == 403
    response = register(client, clerk, role.id, email="other@estatedesk.in")
    assert response.status_code == 403


def test_user_trash_and_restore(client, admin_headers, role):
    user_id = register(client, admin_headers, role.id).json()["data"]["user"]["id"]

    assert client.delete(f"/api/v1/users/{user_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/users/{user_id}", headers=admin_headers).status_code == 404
    trash = client.get("/api/v1/users/trash", headers=admin_headers).json()["data"]
    assert [u["id"] for u in trash] == [user_id]

    again = client.delete(f"/api/v1/users/{user_id}", headers=admin_headers)
    assert again.status_code == 400

    restored = client.post(f"/api/v1/users/{user_id}/restore", headers=admin_headers)
    assert restored.status_code == 200
    assert restored.json()["data"]["status"] is True


def test_change_own_password(client, admin_headers, role):
    register(client, admin_headers, role.id, password="secret123")
    clerk = login(client, "clerk@estatedesk.in", "secret123")

    wrong = client.post(
        "/api/v1/change-password",
        json={"old_password": "nope", "new_password": "newsecret1"},
        headers=clerk,
    )
    assert wrong.status_code == 400
    assert wrong.json()["message"] == "Old password is incorrect."

    ok = client.post(
        "/api/v1/change-password",
        json={"old_password": "secret123", "new_password": "newsecret1"},
        headers=clerk,
    )
    assert ok.status_code == 200
    login(client, "clerk@estatedesk.in", "newsecret1")


def test_super_admin_resets_another_users_password(client, admin_headers, role):
    user_id = register(client, admin_headers, role.id).json()["data"]["user"]["id"]

    response = client.post(
        "/api/v1/change-password",
        json={"user_id": user_id, "new_password": "reset-pass"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    login(client, "clerk@estatedesk.in", "reset-pass")


def test_disabled_user_cannot_log_in(client, admin_headers, role):
    user_id = register(client, admin_headers, role.id, password="secret123").json()["data"]["user"]["id"]
    client.put(f"/api/v1/users/{user_id}", json={"status": False}, headers=admin_headers)

    response = client.post("/api/v1/login", json={"email": "clerk@estatedesk.in", "password": "secret123"})
    assert response.status_code == 403
