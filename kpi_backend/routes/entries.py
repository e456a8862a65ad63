from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..client import LocalClient
from ..services.entry_svc import add_entry, delete_entry, list_entries, update_entry
from ..services.utils import ServiceError
from .base import get_client

router = APIRouter()


class EntryCreate(BaseModel):
    user_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    clients_attended: int = 0
    quotes_sent: int = 0
    follow_ups: int = 0
    sales_closed: int = 0
    amount_sold: float = 0
    devices_sold: int = 0
    exchanges: int = 0
    errors: int = 0
    punctuality_score: float = 5
    quality_score: float = 5
    notes: Optional[str] = None
    actor: str = "Sistema"


class EntryUpdate(BaseModel):
    changes: dict
    actor: str = "Sistema"


class ActorBody(BaseModel):
    actor: str = "Sistema"


@router.get("/api/entries")
async def api_entries(
    user_id: str | None = None,
    limit: int | None = Query(None, ge=0),
    client: LocalClient = Depends(get_client),
):
    try:
        items = await list_entries(client, user_id=user_id, limit=limit)
        return {"total": len(items), "items": items}
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/entries", status_code=201)
async def api_entries_create(body: EntryCreate, client: LocalClient = Depends(get_client)):
    data = body.model_dump(exclude={"actor"}, exclude_none=True)
    try:
        entry = await add_entry(client, data, body.actor)
        return {"message": "ok", "entry": entry}
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/entries/{entry_id}/update")
async def api_entries_update(entry_id: str, body: EntryUpdate, client: LocalClient = Depends(get_client)):
    try:
        entry = await update_entry(client, entry_id, body.changes, body.actor)
        return {"message": "ok", "entry": entry}
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/entries/{entry_id}/delete")
async def api_entries_delete(entry_id: str, body: ActorBody | None = None, client: LocalClient = Depends(get_client)):
    try:
        await delete_entry(client, entry_id, (body or ActorBody()).actor)
        return {"message": "ok"}
    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
