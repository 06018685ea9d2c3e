# tests/helpers.py

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

from taskdesk.models.user import User
from taskdesk.utils.security import create_access_token

PASSWORD = "password123"


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def future(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def past(days: int = 1) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


async def create_task(client: AsyncClient, owner: User, **fields) -> dict:
    payload = {"title": "Task", "due_date": future()}
    payload.update(fields)
    response = await client.post("/tasks/", json=payload, headers=auth_headers(owner))
    assert response.status_code == 201, response.text
    return response.json()
