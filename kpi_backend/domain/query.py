"""
Request descriptor and chainable builder for the embedded store.

A builder never holds table data. Each chain call returns a new builder
wrapping a new frozen QueryRequest; nothing runs until the builder is awaited
(or execute_sync() is called), at which point the request is handed to the
engine as one value.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generator, Iterable, Optional, Protocol, Sequence

from pydantic import BaseModel

from .records import TABLE_MODELS


class QueryBuilderError(ValueError):
    """Raised at chain time for a builder that can never be executed as written."""


class Action(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


@dataclass(frozen=True)
class Filter:
    field: str
    op: str  # "eq" | "neq"
    value: Any


@dataclass(frozen=True)
class Ordering:
    field: str
    ascending: bool = True


@dataclass(frozen=True)
class QueryRequest:
    table: str
    action: Optional[Action] = None
    filters: tuple[Filter, ...] = ()
    ordering: Optional[Ordering] = None
    limit: Optional[int] = None
    single: bool = False
    payload: Any = None
    columns: str = "*"


@dataclass(frozen=True)
class QueryResult:
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def count(self) -> int:
        if self.data is None:
            return 0
        if isinstance(self.data, list):
            return len(self.data)
        return 1

    def rows(self) -> list[dict[str, Any]]:
        """Data as a list, whatever shape the action returned."""
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]

    def models(self, table: str) -> list[BaseModel]:
        model = TABLE_MODELS[table]
        return [model.model_validate(r) for r in self.rows()]


class Executor(Protocol):
    def run(self, request: QueryRequest) -> QueryResult: ...


def _as_payload(rows: Any) -> Any:
    if isinstance(rows, BaseModel):
        return rows.model_dump(mode="json", exclude_unset=True)
    if isinstance(rows, dict):
        return dict(rows)
    if isinstance(rows, (list, tuple)):
        return tuple(_as_payload(r) for r in rows)
    raise QueryBuilderError(f"unsupported payload type: {type(rows).__name__}")


@dataclass(frozen=True)
class QueryBuilder:
    """Immutable, awaitable description of one pending operation on a table."""

    executor: Executor = field(repr=False, compare=False)
    request: QueryRequest

    def _with(self, **changes) -> "QueryBuilder":
        return replace(self, request=replace(self.request, **changes))

    def _action(self, action: Action, **changes) -> "QueryBuilder":
        current = self.request.action
        if current is not None:
            raise QueryBuilderError(
                f"builder for '{self.request.table}' already has action '{current.value}', cannot add '{action.value}'"
            )
        return self._with(action=action, **changes)

    # actions

    def select(self, columns: str = "*") -> "QueryBuilder":
        return self._action(Action.SELECT, columns=columns or "*")

    def insert(self, rows: Any) -> "QueryBuilder":
        return self._action(Action.INSERT, payload=_as_payload(rows))

    def upsert(self, rows: Any) -> "QueryBuilder":
        return self._action(Action.UPSERT, payload=_as_payload(rows))

    def update(self, patch: Any) -> "QueryBuilder":
        payload = _as_payload(patch)
        if not isinstance(payload, dict):
            raise QueryBuilderError("update() takes a single record patch")
        return self._action(Action.UPDATE, payload=payload)

    def delete(self) -> "QueryBuilder":
        return self._action(Action.DELETE)

    # modifiers

    def eq(self, field_name: str, value: Any) -> "QueryBuilder":
        return self._with(filters=self.request.filters + (Filter(field_name, "eq", value),))

    def neq(self, field_name: str, value: Any) -> "QueryBuilder":
        return self._with(filters=self.request.filters + (Filter(field_name, "neq", value),))

    def order(self, field_name: str, ascending: bool = True) -> "QueryBuilder":
        return self._with(ordering=Ordering(field_name, bool(ascending)))

    def limit(self, n: int) -> "QueryBuilder":
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise QueryBuilderError(f"limit must be a non-negative int, got {n!r}")
        return self._with(limit=n)

    def single(self) -> "QueryBuilder":
        return self._with(single=True)

    # execution

    async def execute(self) -> QueryResult:
        # runs to completion without yielding; the await is for call-site parity only
        return self.executor.run(self.request)

    def execute_sync(self) -> QueryResult:
        return self.executor.run(self.request)

    def __await__(self) -> Generator[Any, None, QueryResult]:
        return self.execute().__await__()


def normalize_rows(payload: Any) -> list[dict[str, Any]]:
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [dict(payload)]
    if isinstance(payload, (list, tuple)):
        return [dict(r) for r in payload]
    raise TypeError(f"unsupported payload type: {type(payload).__name__}")


def select_columns(record: dict[str, Any], columns: str) -> dict[str, Any]:
    cols = [c.strip() for c in (columns or "*").split(",") if c.strip()]
    if not cols or "*" in cols:
        return record
    return {c: record.get(c) for c in cols}


def filters_summary(filters: Sequence[Filter] | Iterable[Filter]) -> str:
    return " AND ".join(f"{f.field} {'=' if f.op == 'eq' else '!='} {f.value!r}" for f in filters) or "-"
