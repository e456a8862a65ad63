from __future__ import annotations

# kpi_backend/services/user_svc.py
from typing import Any

from ..client import LocalClient
from ..domain.records import APP_USERS
from .utils import unwrap

PUBLIC_FIELDS = ("id", "name", "role", "avatar")


def _public(u: dict) -> dict:
    return {k: u.get(k) for k in PUBLIC_FIELDS}


async def list_users(client: LocalClient, role: str | None = None) -> list[dict[str, Any]]:
    q = client.table(APP_USERS).select()
    if role:
        q = q.eq("role", role)
    return [_public(u) for u in unwrap(await q.order("name"))]


async def get_user(client: LocalClient, user_id: str) -> dict[str, Any]:
    row = unwrap(await client.table(APP_USERS).select().eq("id", user_id).single())
    if row is None:
        raise LookupError("user_not_found")
    return _public(row)


async def authenticate(client: LocalClient, user_id: str, password: str) -> dict[str, Any] | None:
    """Plain-text password check, same as the login screen did."""
    row = unwrap(await client.table(APP_USERS).select().eq("id", user_id).single())
    if row is None or row.get("password") != password:
        return None
    return _public(row)
