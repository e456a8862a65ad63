from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..client import LocalClient
from ..services.settings_svc import (
    delete_bonus_rule,
    get_targets,
    list_bonus_rules,
    save_bonus_rule,
    toggle_bonus_rule,
    update_targets,
)
from ..services.utils import ServiceError
from .base import get_client

router = APIRouter()


class TargetsUpdateBody(BaseModel):
    updates: dict
    actor: str = "Sistema"


class BonusRuleBody(BaseModel):
    rule: dict
    actor: str = "Sistema"


class ActorBody(BaseModel):
    actor: str = "Sistema"


@router.get("/api/settings/targets")
async def api_targets_get(client: LocalClient = Depends(get_client)):
    try:
        return await get_targets(client)
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/settings/targets")
async def api_targets_update(body: TargetsUpdateBody, client: LocalClient = Depends(get_client)):
    try:
        updated_keys = await update_targets(client, body.updates, body.actor)
        return {"message": "ok", "updated": updated_keys}
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except (LookupError, ServiceError) as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/settings/bonus-rules")
async def api_rules_list(active_only: bool = False, client: LocalClient = Depends(get_client)):
    try:
        return {"items": await list_bonus_rules(client, active_only)}
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/settings/bonus-rules")
async def api_rules_save(body: BonusRuleBody, client: LocalClient = Depends(get_client)):
    try:
        rule = await save_bonus_rule(client, body.rule, body.actor)
        return {"message": "ok", "rule": rule}
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/settings/bonus-rules/{rule_id}/toggle")
async def api_rules_toggle(rule_id: str, body: ActorBody | None = None, client: LocalClient = Depends(get_client)):
    try:
        rule = await toggle_bonus_rule(client, rule_id, (body or ActorBody()).actor)
        return {"message": "ok", "rule": rule}
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/settings/bonus-rules/{rule_id}/delete")
async def api_rules_delete(rule_id: str, body: ActorBody | None = None, client: LocalClient = Depends(get_client)):
    try:
        await delete_bonus_rule(client, rule_id, (body or ActorBody()).actor)
        return {"message": "ok"}
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
