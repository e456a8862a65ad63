# kpi_backend/services/stats_svc.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from ..client import LocalClient
from ..domain.records import APP_USERS, KPI_ENTRIES, Role
from .utils import unwrap

SUM_COLUMNS = {
    "amount_sold": "total_amount",
    "sales_closed": "total_sales",
    "devices_sold": "total_devices",
    "clients_attended": "total_clients",
    "follow_ups": "total_follow_ups",
}


def conversion_rate(sales: float, clients: float) -> float:
    if not clients:
        return 0.0
    return round(sales / clients * 100, 1)


def _frame(entries: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(entries, columns=sorted(set(SUM_COLUMNS) | {"user_id", "date"}))
    for col in SUM_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
    return df


def aggregate_stats(entries: List[Dict[str, Any]]) -> Dict[str, float]:
    """Totals across entries plus the overall conversion rate."""
    df = _frame(entries)
    out = {name: float(df[col].sum()) for col, name in SUM_COLUMNS.items()}
    out["avg_conversion"] = conversion_rate(out["total_sales"], out["total_clients"])
    return out


def filter_dates(entries: List[Dict[str, Any]], start: Optional[str], end: Optional[str]) -> List[Dict[str, Any]]:
    # ISO dates compare correctly as strings
    return [
        e for e in entries
        if (not start or str(e.get("date") or "") >= start) and (not end or str(e.get("date") or "") <= end)
    ]


async def get_stats(client: LocalClient, user_id: str | None = None,
                    start: str | None = None, end: str | None = None) -> Dict[str, float]:
    q = client.table(KPI_ENTRIES).select()
    if user_id:
        q = q.eq("user_id", user_id)
    return aggregate_stats(filter_dates(unwrap(await q), start, end))


async def ranking(client: LocalClient, start: str | None = None, end: str | None = None) -> List[Dict[str, Any]]:
    """Staff totals sorted by amount sold (desc), ties by name."""
    staff = unwrap(await client.table(APP_USERS).select("id,name,avatar").eq("role", Role.STAFF.value))
    if not staff:
        return []
    entries = filter_dates(unwrap(await client.table(KPI_ENTRIES).select()), start, end)
    df = _frame(entries)
    df["user_id"] = df["user_id"].astype(str)
    totals = (
        df.groupby("user_id", as_index=False)[list(SUM_COLUMNS)].sum().rename(columns=SUM_COLUMNS)
        if not df.empty else pd.DataFrame(columns=["user_id", *SUM_COLUMNS.values()])
    )
    days = (
        df.groupby("user_id", as_index=False)["date"].nunique().rename(columns={"date": "days_reported"})
        if not df.empty else pd.DataFrame(columns=["user_id", "days_reported"])
    )

    users = pd.DataFrame(staff).rename(columns={"id": "user_id"})
    users["user_id"] = users["user_id"].astype(str)
    board = users.merge(totals, on="user_id", how="left").merge(days, on="user_id", how="left")
    board[list(SUM_COLUMNS.values()) + ["days_reported"]] = (
        board[list(SUM_COLUMNS.values()) + ["days_reported"]].fillna(0)
    )
    board["conversion_rate"] = [
        conversion_rate(s, c) for s, c in zip(board["total_sales"], board["total_clients"])
    ]
    board = board.sort_values(["total_amount", "name"], ascending=[False, True], kind="mergesort")
    board["rank"] = range(1, len(board) + 1)

    items = []
    for r in board.to_dict(orient="records"):
        items.append({
            "rank": int(r["rank"]),
            "user_id": r["user_id"],
            "name": r.get("name"),
            "avatar": r.get("avatar"),
            "days_reported": int(r["days_reported"]),
            "conversion_rate": float(r["conversion_rate"]),
            **{name: float(r[name]) for name in SUM_COLUMNS.values()},
        })
    return items
