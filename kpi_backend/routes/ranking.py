from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..client import LocalClient
from ..services.stats_svc import get_stats, ranking
from ..services.utils import ServiceError
from .base import get_client

router = APIRouter()

_DATE = r"^\d{4}-\d{2}-\d{2}$"


@router.get("/api/ranking")
async def api_ranking(
    start: Optional[str] = Query(None, pattern=_DATE),
    end: Optional[str] = Query(None, pattern=_DATE),
    client: LocalClient = Depends(get_client),
):
    try:
        return {"items": await ranking(client, start, end)}
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/stats")
async def api_stats(
    user_id: Optional[str] = None,
    start: Optional[str] = Query(None, pattern=_DATE),
    end: Optional[str] = Query(None, pattern=_DATE),
    client: LocalClient = Depends(get_client),
):
    try:
        return await get_stats(client, user_id, start, end)
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
