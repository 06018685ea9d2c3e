# tests/test_users.py

from helpers import auth_headers, create_task


def _new_user(username: str, **extra) -> dict:
    payload = {
        "full_name": "New Person",
        "username": username,
        "email": f"{username}@example.com",
        "password": "s3cret-pass",
    }
    payload.update(extra)
    return payload


async def test_create_user_hides_password(client, make_user):
    admin = await make_user("Admin")
    response = await client.post("/users/", json=_new_user("nina", role_id=2), headers=auth_headers(admin))
    assert response.status_code == 201
    body = response.json()
    assert body["username"] == "nina"
    assert body["role_name"] == "Director"
    assert body["is_active"] is True
    assert "password" not in body
    assert "hashed_password" not in body


async def test_create_user_without_role_rights_gets_user_role(client, make_user):
    division = await make_user("Division")
    response = await client.post("/users/", json=_new_user("omar", role_id=1), headers=auth_headers(division))
    assert response.status_code == 201
    assert response.json()["role_name"] == "User"


async def test_create_user_requires_permission(client, make_user):
    plain = await make_user("User")
    response = await client.post("/users/", json=_new_user("pete"), headers=auth_headers(plain))
    assert response.status_code == 403


async def test_create_user_validation(client, make_user):
    admin = await make_user("Admin", username="boss")
    headers = auth_headers(admin)

    short = await client.post("/users/", json=_new_user("quinn", password="short"), headers=headers)
    assert short.status_code == 422

    bad_email = await client.post("/users/", json=_new_user("rita", email="not-an-email"), headers=headers)
    assert bad_email.status_code == 422

    dup_username = await client.post("/users/", json=_new_user("boss", email="other@example.com"), headers=headers)
    assert dup_username.status_code == 400

    dup_email = await client.post("/users/", json=_new_user("sam", email="boss@example.com"), headers=headers)
    assert dup_email.status_code == 400

    bad_role = await client.post("/users/", json=_new_user("tess", role_id=77), headers=headers)
    assert bad_role.status_code == 400


async def test_list_users_requires_view_all(client, make_user):
    plain = await make_user("User")
    director = await make_user("Director")
    assert (await client.get("/users/", headers=auth_headers(plain))).status_code == 403

    listing = (await client.get("/users/", headers=auth_headers(director))).json()
    assert {u["user_id"] for u in listing} == {plain.user_id, director.user_id}
    assert all("hashed_password" not in u for u in listing)


async def test_list_users_filters(client, make_user):
    admin = await make_user("Admin")
    await make_user("User")
    retired = await make_user("User", is_active=False)
    headers = auth_headers(admin)

    inactive = (await client.get("/users/", params={"is_active": False}, headers=headers)).json()
    assert [u["user_id"] for u in inactive] == [retired.user_id]

    admins = (await client.get("/users/", params={"role_id": 1}, headers=headers)).json()
    assert [u["user_id"] for u in admins] == [admin.user_id]


async def test_user_can_view_self_but_not_others(client, make_user):
    me = await make_user("User")
    other = await make_user("User")
    headers = auth_headers(me)

    mine = await client.get(f"/users/{me.user_id}", headers=headers)
    assert mine.status_code == 200
    assert mine.json()["tasks"] == []

    assert (await client.get(f"/users/{other.user_id}", headers=headers)).status_code == 403


async def test_user_detail_lists_assigned_tasks(client, make_user):
    director = await make_user("Director")
    worker = await make_user("User")
    task = await create_task(client, director, title="Ship it", assigned_user_ids=[worker.user_id])
    gone = await create_task(client, director, title="Dropped", assigned_user_ids=[worker.user_id])
    await client.delete(f"/tasks/{gone['task_id']}", headers=auth_headers(director))

    detail = (await client.get(f"/users/{worker.user_id}", headers=auth_headers(director))).json()
    assert [t["task_id"] for t in detail["tasks"]] == [task["task_id"]]


async def test_self_profile_edit_but_not_role(client, make_user):
    me = await make_user("User")
    headers = auth_headers(me)

    response = await client.patch(f"/users/{me.user_id}", json={"full_name": "Renamed Me"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Renamed Me"

    promote = await client.patch(f"/users/{me.user_id}", json={"role_id": 1}, headers=headers)
    assert promote.status_code == 403


async def test_role_change_requires_manage_roles(client, make_user):
    director = await make_user("Director")
    admin = await make_user("Admin")
    worker = await make_user("User")

    denied = await client.patch(f"/users/{worker.user_id}", json={"role_id": 3}, headers=auth_headers(director))
    assert denied.status_code == 403

    moved = await client.patch(f"/users/{worker.user_id}", json={"role_id": 3}, headers=auth_headers(admin))
    assert moved.status_code == 200
    assert moved.json()["role_name"] == "Division"

    missing = await client.patch(f"/users/{worker.user_id}", json={"role_id": 99}, headers=auth_headers(admin))
    assert missing.status_code == 400


async def test_email_must_stay_unique(client, make_user):
    admin = await make_user("Admin")
    await make_user("User", username="taken")
    worker = await make_user("User")

    response = await client.patch(
        f"/users/{worker.user_id}", json={"email": "taken@example.com"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400

    # Re-saving your own email is not a conflict
    same = await client.put(
        f"/users/{worker.user_id}", json={"email": f"{worker.username}@example.com"}, headers=auth_headers(admin)
    )
    assert same.status_code == 200


async def test_deactivate_blocked_by_open_tasks(client, make_user):
    admin = await make_user("Admin")
    worker = await make_user("User")
    task = await create_task(client, admin, assigned_user_ids=[worker.user_id])
    headers = auth_headers(admin)

    blocked = await client.delete(f"/users/{worker.user_id}", headers=headers)
    assert blocked.status_code == 409

    await client.patch(f"/tasks/{task['task_id']}", json={"status": "Completed"}, headers=headers)
    done = await client.delete(f"/users/{worker.user_id}", headers=headers)
    assert done.status_code == 200

    detail = (await client.get(f"/users/{worker.user_id}", headers=headers)).json()
    assert detail["is_active"] is False


async def test_deleted_tasks_do_not_block_deactivation(client, make_user):
    admin = await make_user("Admin")
    worker = await make_user("User")
    task = await create_task(client, admin, assigned_user_ids=[worker.user_id])
    headers = auth_headers(admin)

    await client.delete(f"/tasks/{task['task_id']}", headers=headers)
    response = await client.patch(f"/users/{worker.user_id}", json={"is_active": False}, headers=headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False


async def test_cannot_deactivate_self(client, make_user):
    admin = await make_user("Admin")
    response = await client.delete(f"/users/{admin.user_id}", headers=auth_headers(admin))
    assert response.status_code == 400


async def test_deactivate_requires_permission(client, make_user):
    director = await make_user("Director")
    worker = await make_user("User")
    response = await client.delete(f"/users/{worker.user_id}", headers=auth_headers(director))
    assert response.status_code == 403


async def test_deactivated_user_loses_access(client, make_user):
    admin = await make_user("Admin")
    worker = await make_user("User")
    token_headers = auth_headers(worker)

    await client.delete(f"/users/{worker.user_id}", headers=auth_headers(admin))
    assert (await client.get("/auth/me", headers=token_headers)).status_code == 401


async def test_user_stats(client, make_user):
    admin = await make_user("Admin")
    busy = await make_user("User", full_name="Busy Bee")
    idle = await make_user("User")
    await make_user("Division", is_active=False)
    headers = auth_headers(admin)

    t1 = await create_task(client, admin, assigned_user_ids=[busy.user_id])
    await create_task(client, admin, assigned_user_ids=[busy.user_id, idle.user_id])
    await client.patch(f"/tasks/{t1['task_id']}", json={"status": "Completed"}, headers=headers)

    stats = (await client.get("/users/stats", headers=headers)).json()
    assert stats["total_users"] == 3
    by_role = {r["role_name"]: r["user_count"] for r in stats["users_by_role"]}
    assert by_role == {"Admin": 1, "Director": 0, "Division": 0, "User": 2}

    top = stats["top_users"][0]
    assert top["user_id"] == busy.user_id
    assert top["task_count"] == 2
    assert top["completed_tasks"] == 1
    assert top["role_name"] == "User"

    plain = auth_headers(idle)
    assert (await client.get("/users/stats", headers=plain)).status_code == 403


async def test_unchanged_values_still_need_rights(client, make_user):
    snoop = await make_user("User")
    target = await make_user("User")
    headers = auth_headers(snoop)
    url = f"/users/{target.user_id}"

    assert (await client.patch(url, json={"is_active": True}, headers=headers)).status_code == 403
    assert (await client.patch(url, json={"role_id": target.role_id}, headers=headers)).status_code == 403
    assert (await client.put(url, json={}, headers=headers)).status_code == 403


async def test_same_role_id_needs_manage_roles(client, make_user):
    director = await make_user("Director")
    worker = await make_user("User")
    response = await client.patch(
        f"/users/{worker.user_id}", json={"role_id": worker.role_id}, headers=auth_headers(director)
    )
    assert response.status_code == 403

    # Director can still edit the profile
    ok = await client.patch(
        f"/users/{worker.user_id}", json={"full_name": "Edited"}, headers=auth_headers(director)
    )
    assert ok.status_code == 200


async def test_denial_does_not_reveal_whether_user_exists(client, make_user):
    snoop = await make_user("User")
    active = await make_user("User")
    retired = await make_user("User", is_active=False)
    headers = auth_headers(snoop)

    for user_id in (active.user_id, retired.user_id, 424242):
        get = await client.get(f"/users/{user_id}", headers=headers)
        patch = await client.patch(f"/users/{user_id}", json={"full_name": "x"}, headers=headers)
        delete = await client.delete(f"/users/{user_id}", headers=headers)
        assert get.status_code == patch.status_code == delete.status_code == 403
        assert get.json() == {"detail": "Access denied"}


async def test_privileged_callers_still_see_missing_users_as_404(client, make_user):
    admin = await make_user("Admin")
    headers = auth_headers(admin)
    assert (await client.get("/users/424242", headers=headers)).status_code == 404
    assert (await client.delete("/users/424242", headers=headers)).status_code == 404
