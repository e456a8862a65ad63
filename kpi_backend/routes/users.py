from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..client import LocalClient
from ..logs import LogContext
from ..services.user_svc import authenticate, list_users
from ..services.utils import ServiceError
from .base import get_client

router = APIRouter()


class LoginBody(BaseModel):
    user_id: str
    password: str


@router.get("/api/users")
async def api_users(role: str | None = None, client: LocalClient = Depends(get_client)):
    try:
        return {"items": await list_users(client, role)}
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/login")
async def api_login(body: LoginBody, client: LocalClient = Depends(get_client)):
    try:
        user = await authenticate(client, body.user_id, body.password)
    except ServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if user is None:
        raise HTTPException(status_code=401, detail="invalid_credentials")
    log = LogContext(client, "LOGIN", user["name"])
    await log.write("OK")
    return {"user": user}
