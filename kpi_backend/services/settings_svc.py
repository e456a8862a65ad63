# kpi_backend/services/settings_svc.py
from __future__ import annotations

import time
from typing import Any

from ..client import LocalClient
from ..domain.records import APP_TARGETS, BONUS_RULES, TARGETS_ROW_ID, coerce
from ..logs import LogContext
from .utils import unwrap

TARGET_FIELDS = ("monthly_sales_amount", "monthly_devices", "daily_conversion", "daily_follow_ups", "max_errors")


async def get_targets(client: LocalClient) -> dict[str, Any]:
    row = unwrap(await client.table(APP_TARGETS).select().eq("id", TARGETS_ROW_ID).single())
    if row is None:
        raise LookupError("targets_not_found")
    return row


async def update_targets(client: LocalClient, patch: dict[str, Any], actor: str) -> list[str]:
    """Merge known target fields into the singleton row; returns the keys written."""
    unknown = [k for k in patch if k not in TARGET_FIELDS]
    if unknown:
        raise ValueError(f"unknown_target_fields: {', '.join(unknown)}")
    changes = coerce(APP_TARGETS, patch)
    log = LogContext(client, "UPDATE_TARGETS", actor)
    before = unwrap(await client.table(APP_TARGETS).select().eq("id", TARGETS_ROW_ID).single()) or {}
    try:
        unwrap(await client.table(APP_TARGETS).upsert({"id": TARGETS_ROW_ID, **changes}))
    except Exception as e:
        log.set_payload(changes)
        await log.write("ERROR", str(e))
        raise
    after = await get_targets(client)
    log.set_before({k: before.get(k) for k in changes})
    log.set_after({k: after.get(k) for k in changes})
    await log.write("OK")
    return list(changes)


async def list_bonus_rules(client: LocalClient, active_only: bool = False) -> list[dict[str, Any]]:
    q = client.table(BONUS_RULES).select()
    if active_only:
        q = q.eq("is_active", True)
    return unwrap(await q)


async def _get_rule(client: LocalClient, rule_id: str) -> dict[str, Any]:
    row = unwrap(await client.table(BONUS_RULES).select().eq("id", rule_id).single())
    if row is None:
        raise LookupError("bonus_rule_not_found")
    return row


async def save_bonus_rule(client: LocalClient, rule: dict[str, Any], actor: str) -> dict[str, Any]:
    """Create (no id) or update (existing id) a bonus rule."""
    rec = coerce(BONUS_RULES, rule)
    rule_id = rec.pop("id", None)
    if rule_id is None:
        if not rec.get("name") or not rec.get("threshold") or not rec.get("amount"):
            raise ValueError("name, threshold and amount are required")
        rec = {
            "id": f"b{int(time.time() * 1000)}",
            "metric": "amount",
            **rec,
            "period": "monthly",
            "is_active": True,
        }
        log = LogContext(client, "CREATE_BONUS_RULE", actor)
        log.set_payload(rec)
        try:
            created = unwrap(await client.table(BONUS_RULES).insert(rec))[0]
        except Exception as e:
            await log.write("ERROR", str(e))
            raise
        await log.write("OK")
        return created

    before = await _get_rule(client, rule_id)
    log = LogContext(client, "UPDATE_BONUS_RULE", actor)
    log.set_before(before)
    try:
        unwrap(await client.table(BONUS_RULES).upsert({**rec, "id": before["id"]}))
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    after = await _get_rule(client, rule_id)
    log.set_after(after)
    await log.write("OK")
    return after


async def toggle_bonus_rule(client: LocalClient, rule_id: str, actor: str) -> dict[str, Any]:
    rule = await _get_rule(client, rule_id)
    active = not bool(rule.get("is_active"))
    log = LogContext(client, "TOGGLE_BONUS_RULE", actor)
    log.set_details(f"{rule.get('name')}: {'on' if active else 'off'}")
    try:
        unwrap(await client.table(BONUS_RULES).update({"is_active": active}).eq("id", rule_id))
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    await log.write("OK")
    return {**rule, "is_active": active}


async def delete_bonus_rule(client: LocalClient, rule_id: str, actor: str) -> None:
    rule = await _get_rule(client, rule_id)
    log = LogContext(client, "DELETE_BONUS_RULE", actor)
    log.set_details(f"{rule.get('name')} ({rule_id})")
    try:
        unwrap(await client.table(BONUS_RULES).delete().eq("id", rule_id))
    except Exception as e:
        await log.write("ERROR", str(e))
        raise
    await log.write("OK")
