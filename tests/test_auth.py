# tests/test_auth.py

from datetime import timedelta

from jose import jwt

from helpers import PASSWORD, auth_headers

from taskdesk.config import settings
from taskdesk.utils.security import create_access_token


async def _login(client, username: str, password: str):
    return await client.post("/auth/token", data={"username": username, "password": password})


async def test_login_returns_token_and_user(client, make_user):
    user = await make_user("Director", username="dora")
    response = await _login(client, "dora", PASSWORD)
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "dora"
    assert body["user"]["role_name"] == "Director"
    assert "hashed_password" not in body["user"]

    claims = jwt.decode(body["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert claims["sub"] == str(user.user_id)
    assert claims["unique_name"] == "dora"
    assert claims["role"] == "Director"
    assert claims["email"] == "dora@example.com"
    assert claims["jti"]
    assert claims["exp"] > claims["iat"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["user_id"] == user.user_id


async def test_wrong_password_and_inactive_user_look_the_same(client, make_user):
    await make_user("User", username="ed")
    await make_user("User", username="fay", is_active=False)

    wrong = await _login(client, "ed", "not-the-password")
    inactive = await _login(client, "fay", PASSWORD)
    unknown = await _login(client, "ghost", PASSWORD)
    assert wrong.status_code == inactive.status_code == unknown.status_code == 401
    assert wrong.json() == inactive.json() == unknown.json()


async def test_expired_token_is_rejected(client, make_user):
    user = await make_user("User")
    token = create_access_token(user, expires_delta=timedelta(minutes=-1))
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_malformed_and_foreign_tokens_are_rejected(client, make_user):
    user = await make_user("User")
    garbage = await client.get("/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert garbage.status_code == 401

    forged = jwt.encode({"sub": str(user.user_id)}, "some-other-key", algorithm="HS256")
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


async def test_token_for_missing_user_is_rejected(client, make_user):
    user = await make_user("User")
    user.user_id = 987654
    response = await client.get("/auth/me", headers=auth_headers(user))
    assert response.status_code == 401


async def test_change_password(client, make_user):
    await make_user("User", username="hal")
    token = (await _login(client, "hal", PASSWORD)).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    wrong = await client.post(
        "/auth/change-password", json={"current_password": "nope-nope", "new_password": "brand-new-pass"}, headers=headers
    )
    assert wrong.status_code == 400

    reuse = await client.post(
        "/auth/change-password", json={"current_password": PASSWORD, "new_password": PASSWORD}, headers=headers
    )
    assert reuse.status_code == 400

    ok = await client.post(
        "/auth/change-password", json={"current_password": PASSWORD, "new_password": "brand-new-pass"}, headers=headers
    )
    assert ok.status_code == 200

    assert (await _login(client, "hal", PASSWORD)).status_code == 401
    assert (await _login(client, "hal", "brand-new-pass")).status_code == 200


async def test_unhandled_errors_return_generic_detail(client, make_user, monkeypatch):
    from taskdesk.services import tasks as task_service

    async def boom(*args, **kwargs):
        raise RuntimeError("database exploded: secret detail")

    monkeypatch.setattr(task_service, "list_tasks", boom)
    user = await make_user("User")
    response = await client.get("/tasks/", headers=auth_headers(user))
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal Server Error"}
