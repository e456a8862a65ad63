from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..client import LocalClient
from ..logs import search_logs
from ..services.utils import ServiceError
from .base import get_client

router = APIRouter()


@router.get("/api/logs/search")
async def api_logs_search(
    page: int = 1,
    size: int = 20,
    action: str | None = None,
    user_name: str | None = None,
    client: LocalClient = Depends(get_client),
):
    try:
        total, items = await search_logs(client, action, user_name, page, size)
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"total": total, "items": items}
