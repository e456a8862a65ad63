from __future__ import annotations

# kpi_backend/services/entry_svc.py
from typing import Any

from ..client import LocalClient
from ..domain.records import APP_USERS, KPI_ENTRIES, KpiEntry, coerce
from ..logs import LogContext
from .utils import unwrap

REQUIRED_FIELDS = ("user_id", "date")


async def list_entries(client: LocalClient, user_id: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
    """Entries newest first, optionally for one user."""
    q = client.table(KPI_ENTRIES).select()
    if user_id:
        q = q.eq("user_id", user_id)
    q = q.order("date", ascending=False)
    if limit is not None:
        q = q.limit(limit)
    return unwrap(await q)


async def latest_entry(client: LocalClient, user_id: str) -> dict[str, Any] | None:
    q = client.table(KPI_ENTRIES).select().eq("user_id", user_id).order("date", ascending=False).limit(1).single()
    return unwrap(await q)


async def get_entry(client: LocalClient, entry_id: str) -> dict[str, Any]:
    row = unwrap(await client.table(KPI_ENTRIES).select().eq("id", entry_id).single())
    if row is None:
        raise LookupError("entry_not_found")
    return row


async def add_entry(client: LocalClient, entry: dict[str, Any] | KpiEntry, actor: str) -> dict[str, Any]:
    rec = coerce(KPI_ENTRIES, entry)
    missing = [k for k in REQUIRED_FIELDS if not rec.get(k)]
    if missing:
        raise ValueError(f"missing_fields: {', '.join(missing)}")

    user = unwrap(await client.table(APP_USERS).select("id,name").eq("id", rec["user_id"]).single())
    if user is None:
        raise ValueError("user_not_found")

    dup = unwrap(
        await client.table(KPI_ENTRIES).select("id").eq("user_id", rec["user_id"]).eq("date", rec["date"]).limit(1)
    )
    if dup:
        raise ValueError("entry_exists_for_date")

    rec.setdefault("id", f"{rec['user_id']}-{rec['date']}")
    log = LogContext(client, "CREATE_KPI_ENTRY", actor)
    log.set_details(f"{user['name']} {rec['date']}")
    try:
        created = unwrap(await client.table(KPI_ENTRIES).insert(rec))[0]
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    await log.write("OK")
    return created


async def update_entry(client: LocalClient, entry_id: str, patch: dict[str, Any], actor: str) -> dict[str, Any]:
    before = await get_entry(client, entry_id)
    changes = {k: v for k, v in coerce(KPI_ENTRIES, patch).items() if k not in ("id", "user_id")}
    if not changes:
        return before
    if "date" in changes and changes["date"] != before.get("date"):
        dup = unwrap(
            await client.table(KPI_ENTRIES).select("id")
            .eq("user_id", before.get("user_id")).eq("date", changes["date"]).neq("id", entry_id).limit(1)
        )
        if dup:
            raise ValueError("entry_exists_for_date")
    log = LogContext(client, "UPDATE_KPI_ENTRY", actor)
    log.set_before({k: before.get(k) for k in changes})
    try:
        unwrap(await client.table(KPI_ENTRIES).update(changes).eq("id", entry_id))
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    after = await get_entry(client, entry_id)
    log.set_after({k: after.get(k) for k in changes})
    await log.write("OK")
    return after


async def delete_entry(client: LocalClient, entry_id: str, actor: str) -> None:
    before = await get_entry(client, entry_id)
    log = LogContext(client, "DELETE_KPI_ENTRY", actor)
    log.set_details(f"{before.get('user_id')} {before.get('date')} ({entry_id})")
    try:
        unwrap(await client.table(KPI_ENTRIES).delete().eq("id", entry_id))
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    await log.write("OK")
