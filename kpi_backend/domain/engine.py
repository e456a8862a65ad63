"""
Interprets a QueryRequest against a RecordStore.

Every action is a whole-table read-modify-write held under a per-table lock.
Failures never escape run(): they come back in QueryResult.error.
"""
from __future__ import annotations

import logging
import math
import threading
import uuid
from collections import defaultdict
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..repository.record_store import RecordStore, StoreError
from .query import (
    Action,
    Filter,
    Ordering,
    QueryRequest,
    QueryResult,
    filters_summary,
    normalize_rows,
    select_columns,
)
from .records import SINGLETON_TABLES, coerce

logger = logging.getLogger(__name__)


class QueryError(RuntimeError):
    """A request that is well-formed but violates a table rule (duplicate id, singleton id)."""


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool):
        return float(v)
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        try:
            f = float(v.strip())
        except ValueError:
            return None
        return f if math.isfinite(f) else None
    return None


def loose_equals(a: Any, b: Any) -> bool:
    """Equality tolerant of number-vs-string spelling: 5 == "5" == "5.0", True == 1."""
    if a is None or b is None:
        return a is None and b is None
    if a == b:
        return True
    if isinstance(a, str) and isinstance(b, str):
        return False
    na, nb = _number(a), _number(b)
    if na is not None and nb is not None:
        return na == nb
    return str(a) == str(b)


def matches(record: dict[str, Any], filters: tuple[Filter, ...]) -> bool:
    for f in filters:
        hit = loose_equals(record.get(f.field), f.value)
        if f.op == "eq" and not hit:
            return False
        if f.op == "neq" and hit:
            return False
    return True


def _sort_key(field: str) -> Callable[[dict[str, Any]], tuple]:
    def key(record: dict[str, Any]) -> tuple:
        v = record.get(field)
        if v is None:
            return (1, 0, 0)
        n = _number(v) if not isinstance(v, str) else None
        if n is not None:
            return (0, 0, n)
        return (0, 1, str(v))
    return key


def apply_ordering(records: list[dict[str, Any]], ordering: Ordering) -> list[dict[str, Any]]:
    # sorted() stays stable with reverse=True; nulls end up last ascending, first descending
    return sorted(records, key=_sort_key(ordering.field), reverse=not ordering.ascending)


class QueryEngine:
    def __init__(self, store: RecordStore, id_factory: Callable[[], str] | None = None):
        self.store = store
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._locks: defaultdict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    def _lock(self, table: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks[table]

    def run(self, request: QueryRequest) -> QueryResult:
        if request.action is None:
            logger.debug("no action set on builder for %s; nothing to do", request.table)
            return QueryResult(data=None, error=None)
        handler = getattr(self, f"_{request.action.value}")
        try:
            with self._lock(request.table):
                return handler(request)
        except (StoreError, QueryError, ValidationError) as e:
            logger.warning(
                "%s on %s failed (filters: %s): %s",
                request.action.value, request.table, filters_summary(request.filters), e,
            )
            return QueryResult(data=None, error=str(e))
        except Exception as e:
            logger.exception(
                "%s on %s failed (filters: %s): %s",
                request.action.value, request.table, filters_summary(request.filters), e,
            )
            return QueryResult(data=None, error=str(e))

    # helpers

    def _new_id(self, taken: set[str]) -> str:
        while True:
            candidate = self._id_factory()
            if str(candidate) not in taken:
                return candidate

    def _check_singleton(self, table: str, record: dict[str, Any]) -> None:
        fixed = SINGLETON_TABLES.get(table)
        if fixed is None:
            return
        if record.get("id") is None:
            record["id"] = fixed
        elif not loose_equals(record["id"], fixed):
            raise QueryError(f"{table} is a singleton table; id must be {fixed}, got {record['id']!r}")

    def _find(self, records: list[dict[str, Any]], record_id: Any) -> Optional[int]:
        for i, r in enumerate(records):
            if loose_equals(r.get("id"), record_id):
                return i
        return None

    # actions

    def _insert(self, request: QueryRequest) -> QueryResult:
        table = request.table
        rows = normalize_rows(request.payload)
        if not rows:
            return QueryResult(data=[], error=None)
        existing = self.store.read(table)
        taken = {str(r.get("id")) for r in existing}
        inserted = []
        for raw in rows:
            rec = coerce(table, raw)
            self._check_singleton(table, rec)
            if rec.get("id") is None:
                rec["id"] = self._new_id(taken)
            elif self._find(existing + inserted, rec["id"]) is not None:
                raise QueryError(f"duplicate key: {table}.id={rec['id']!r} already exists")
            taken.add(str(rec["id"]))
            inserted.append(rec)
        self.store.write(table, existing + inserted)
        return QueryResult(data=inserted, error=None)

    def _upsert(self, request: QueryRequest) -> QueryResult:
        table = request.table
        rows = normalize_rows(request.payload)
        if not rows:
            return QueryResult(data=[], error=None)
        records = self.store.read(table)
        taken = {str(r.get("id")) for r in records}
        out = []
        for raw in rows:
            rec = coerce(table, raw)
            self._check_singleton(table, rec)
            idx = self._find(records, rec["id"]) if rec.get("id") is not None else None
            if idx is not None:
                merged = {**records[idx], **{k: v for k, v in rec.items() if k != "id"}}
                records[idx] = merged
            else:
                if rec.get("id") is None:
                    rec["id"] = self._new_id(taken)
                taken.add(str(rec["id"]))
                records.append(rec)
            out.append(rec)
        self.store.write(table, records)
        return QueryResult(data=out, error=None)

    def _update(self, request: QueryRequest) -> QueryResult:
        table = request.table
        patch = coerce(table, request.payload or {})
        patch.pop("id", None)
        records = self.store.read(table)
        hit = 0
        for r in records:
            if matches(r, request.filters):
                r.update(patch)
                hit += 1
        if hit:
            self.store.write(table, records)
        logger.debug("update %s matched %d rows", table, hit)
        return QueryResult(data=None, error=None)

    def _delete(self, request: QueryRequest) -> QueryResult:
        table = request.table
        records = self.store.read(table)
        kept = [r for r in records if not matches(r, request.filters)]
        if len(kept) != len(records):
            self.store.write(table, kept)
        logger.debug("delete %s removed %d rows", table, len(records) - len(kept))
        return QueryResult(data=None, error=None)

    def _select(self, request: QueryRequest) -> QueryResult:
        rows = [r for r in self.store.read(request.table) if matches(r, request.filters)]
        if request.ordering is not None:
            rows = apply_ordering(rows, request.ordering)
        if request.limit is not None:
            rows = rows[: request.limit]
        rows = [select_columns(r, request.columns) for r in rows]
        if request.single:
            return QueryResult(data=rows[0] if rows else None, error=None)
        return QueryResult(data=rows, error=None)
