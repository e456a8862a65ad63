from fastapi import APIRouter, Request

from ..client import LocalClient

router = APIRouter()

APP_NAME = "staff-kpi-api"
APP_VERSION = "0.1.0"


def get_client(request: Request) -> LocalClient:
    return request.app.state.client


@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/version")
def version():
    return {"app": APP_NAME, "version": APP_VERSION}
