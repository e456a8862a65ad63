from __future__ import annotations

import copy
import datetime as dt
import json
import sqlite3
from typing import Any, Protocol

from ..db import get_conn


class StoreError(RuntimeError):
    """The persistence medium could not load or save a table."""


class RecordStore(Protocol):
    """Whole-table load/save contract shared by every store backend."""

    def read(self, table: str) -> list[dict[str, Any]]: ...
    def exists(self, table: str) -> bool: ...
    def write(self, table: str, records: list[dict[str, Any]]) -> None: ...
    def drop(self, table: str) -> None: ...
    def tables(self) -> list[str]: ...


DDL = """
CREATE TABLE IF NOT EXISTS record_store (
  name TEXT PRIMARY KEY,
  payload TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
"""


def _dumps(records: list[dict[str, Any]]) -> str:
    try:
        return json.dumps(records, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StoreError(f"serialize_failed: {e}") from e


class SqliteRecordStore:
    """
    One SQLite row per table, payload is the JSON list of records.
    A table key that was never written has no row at all; an emptied table
    keeps its row with payload "[]".
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path
        self.ensure_schema()

    def ensure_schema(self) -> None:
        try:
            with get_conn(self.db_path) as conn:
                conn.executescript(DDL)
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"schema_failed: {e}") from e

    def read(self, table: str) -> list[dict[str, Any]]:
        try:
            with get_conn(self.db_path) as conn:
                row = conn.execute("SELECT payload FROM record_store WHERE name=?", (table,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"read_failed[{table}]: {e}") from e
        if row is None:
            return []
        try:
            data = json.loads(row["payload"])
        except ValueError as e:
            raise StoreError(f"corrupt_payload[{table}]: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"corrupt_payload[{table}]: expected a list")
        return data

    def exists(self, table: str) -> bool:
        try:
            with get_conn(self.db_path) as conn:
                row = conn.execute("SELECT 1 FROM record_store WHERE name=?", (table,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"read_failed[{table}]: {e}") from e
        return row is not None

    def write(self, table: str, records: list[dict[str, Any]]) -> None:
        payload = _dumps(list(records))
        ts = dt.datetime.now(dt.timezone.utc).isoformat()
        try:
            with get_conn(self.db_path) as conn:
                with conn:
                    conn.execute(
                        "INSERT INTO record_store(name, payload, updated_at) VALUES(?,?,?) "
                        "ON CONFLICT(name) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at",
                        (table, payload, ts),
                    )
        except sqlite3.Error as e:
            raise StoreError(f"write_failed[{table}]: {e}") from e

    def drop(self, table: str) -> None:
        try:
            with get_conn(self.db_path) as conn:
                with conn:
                    conn.execute("DELETE FROM record_store WHERE name=?", (table,))
        except sqlite3.Error as e:
            raise StoreError(f"drop_failed[{table}]: {e}") from e

    def tables(self) -> list[str]:
        try:
            with get_conn(self.db_path) as conn:
                rows = conn.execute("SELECT name FROM record_store ORDER BY name").fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"read_failed: {e}") from e
        return [r["name"] for r in rows]


class MemoryRecordStore:
    """Dict-backed store; copies on the way in and out so callers never alias stored rows."""

    def __init__(self, initial: dict[str, list[dict[str, Any]]] | None = None):
        self._tables: dict[str, list[dict[str, Any]]] = copy.deepcopy(initial or {})

    def read(self, table: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._tables.get(table, []))

    def exists(self, table: str) -> bool:
        return table in self._tables

    def write(self, table: str, records: list[dict[str, Any]]) -> None:
        # same serializability rule as the sqlite backend
        _dumps(list(records))
        self._tables[table] = copy.deepcopy(list(records))

    def drop(self, table: str) -> None:
        self._tables.pop(table, None)

    def tables(self) -> list[str]:
        return sorted(self._tables)
