"""
Client facade over the embedded store.

Call sites only ever see `client.table(name)` builders and the channel API,
the same shape a remote backend client exposes, so they run unchanged
whichever backend sits behind them.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Optional

from .db import get_db_path
from .domain.engine import QueryEngine
from .domain.query import QueryBuilder, QueryRequest
from .repository.record_store import RecordStore, SqliteRecordStore
from .services.seed_svc import ensure_seed_data

logger = logging.getLogger(__name__)


class Channel:
    """Realtime subscription placeholder: listeners are recorded and never called.

    Pages that need fresh data re-run their select after a mutation.
    """

    def __init__(self, name: str):
        self.name = name
        self.listeners: list[tuple[str, dict[str, Any], Callable]] = []
        self.subscribed = False

    def on(self, event: str, callback: Callable, **filter_opts: Any) -> "Channel":
        self.listeners.append((event, filter_opts, callback))
        return self

    def subscribe(self, callback: Optional[Callable] = None) -> "Channel":
        self.subscribed = True
        return self

    def unsubscribe(self) -> None:
        self.subscribed = False
        self.listeners.clear()


class LocalClient:
    def __init__(self, store: RecordStore, seed: bool = True, today: dt.date | None = None):
        self.store = store
        self.engine = QueryEngine(store)
        self.channels: dict[str, Channel] = {}
        self.seeded: list[str] = ensure_seed_data(store, today=today) if seed else []

    def table(self, name: str) -> QueryBuilder:
        if not name:
            raise ValueError("table name is required")
        return QueryBuilder(executor=self.engine, request=QueryRequest(table=name))

    def channel(self, name: str) -> Channel:
        ch = self.channels.get(name)
        if ch is None:
            ch = self.channels[name] = Channel(name)
        return ch

    def remove_channel(self, channel: Channel) -> None:
        channel.unsubscribe()
        self.channels.pop(channel.name, None)


def create_client(db_path: str | None = None, seed: bool = True) -> LocalClient:
    path = db_path or get_db_path()
    logger.info("opening embedded store at %s", path)
    return LocalClient(SqliteRecordStore(path), seed=seed)
