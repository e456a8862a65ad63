import asyncio
import datetime as dt
import os
import sys
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

TODAY = dt.date(2024, 1, 10)


def run(awaitable):
    """Drive a coroutine or an awaitable builder to completion."""
    async def _go():
        return await awaitable
    return asyncio.run(_go())


@pytest.fixture()
def tmp_db_path(tmp_path, monkeypatch):
    path = tmp_path / "kpi_test.db"
    # Point the backend at this temp DB
    monkeypatch.setenv("KPI_DB_PATH", str(path))
    return str(path)


@pytest.fixture()
def store(tmp_db_path):
    from kpi_backend.repository.record_store import SqliteRecordStore
    return SqliteRecordStore(tmp_db_path)


@pytest.fixture()
def client(store):
    """Seeded client over a temp SQLite file."""
    from kpi_backend.client import LocalClient
    return LocalClient(store, today=TODAY)


@pytest.fixture()
def bare():
    """Unseeded client over an in-memory store."""
    from kpi_backend.client import LocalClient
    from kpi_backend.repository.record_store import MemoryRecordStore
    return LocalClient(MemoryRecordStore(), seed=False)


@pytest.fixture()
def http(client):
    from kpi_backend.api import create_app
    from fastapi.testclient import TestClient
    return TestClient(create_app(client))
