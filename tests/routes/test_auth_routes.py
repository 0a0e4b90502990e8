import uuid

import pytest


async def test_signup(client):
    response = await client.post(
        "/api/auth/signup",
        json={"name": " Priya ", "email": "Priya@College.EDU", "branch": "ECE", "semester": 2},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Priya"
    assert body["email"] == "priya@college.edu"
    assert body["role"] == "student"
    assert body["accountStatus"] == "active"


async def test_signup_duplicate_email(client, student):
    response = await client.post(
        "/api/auth/signup",
        json={"name": "Copy", "email": student.email.upper(), "branch": "CSE", "semester": 1},
    )
    assert response.status_code == 409


async def test_signup_validation(client):
    response = await client.post(
        "/api/auth/signup",
        json={"name": "A", "email": "no-at-sign", "branch": "CSE", "semester": 1},
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/auth/signup",
        json={"name": "A", "email": "a@b.edu", "branch": "ARTS", "semester": 12},
    )
    assert response.status_code == 422


async def test_me(client, student, auth_headers):
    response = await client.get("/api/auth/me", headers=auth_headers(student))

    assert response.status_code == 200
    assert response.json()["id"] == str(student.id)
    assert response.json()["lastActive"] is not None


async def test_me_requires_user(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401


async def test_last_active_is_recorded_by_me(client, student, auth_headers):
    profile_url = f"/api/auth/user/{student.id}"
    await client.get("/api/resources/user/my-uploads", headers=auth_headers(student))
    assert (await client.get(profile_url)).json()["lastActive"] is None

    await client.get("/api/auth/me", headers=auth_headers(student))
    assert (await client.get(profile_url)).json()["lastActive"] is not None


async def test_update_profile(client, student, auth_headers):
    response = await client.put(
        "/api/auth/profile",
        json={"name": "  Ravi Kumar ", "semester": 6},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Ravi Kumar"
    assert body["semester"] == 6
    assert body["branch"] == student.branch


async def test_update_profile_requires_a_field(client, student, auth_headers):
    response = await client.put("/api/auth/profile", json={}, headers=auth_headers(student))
    assert response.status_code == 400


@pytest.mark.parametrize(
    "body",
    [{"name": "R"}, {"branch": "ARTS"}, {"semester": 0}, {"semester": 9}],
)
async def test_update_profile_validation(client, student, auth_headers, body):
    response = await client.put("/api/auth/profile", json=body, headers=auth_headers(student))
    assert response.status_code == 422


async def test_update_profile_requires_user(client):
    response = await client.put("/api/auth/profile", json={"name": "Nobody"})
    assert response.status_code == 401


async def test_public_profile_hides_private_fields(client, student):
    response = await client.get(f"/api/auth/user/{student.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == student.name
    assert body["role"] == "student"
    assert "email" not in body
    assert "accountStatus" not in body


async def test_public_profile_not_found(client):
    response = await client.get(f"/api/auth/user/{uuid.uuid4()}")
    assert response.status_code == 404
