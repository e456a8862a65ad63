from __future__ import annotations

# kpi_backend/services/utils.py
from typing import Any

from ..domain.query import QueryResult


class ServiceError(RuntimeError):
    """A store call came back with an error result."""


def unwrap(res: QueryResult) -> Any:
    if res.error:
        raise ServiceError(res.error)
    return res.data
