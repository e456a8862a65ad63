from __future__ import annotations

# kpi_backend/services/seed_svc.py
import datetime as dt
import logging
import os
import random
from typing import Any

import yaml

from ..domain.records import (
    APP_TARGETS,
    APP_USERS,
    BONUS_RULES,
    KPI_ENTRIES,
    Role,
    coerce,
    snake_keys,
)
from ..repository.record_store import RecordStore

logger = logging.getLogger(__name__)

FIXTURES_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "seeds", "fixtures.yaml")

SEEDED_TABLES = (APP_USERS, APP_TARGETS, BONUS_RULES, KPI_ENTRIES)


def load_fixtures(path: str = FIXTURES_PATH) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def generate_history(users: list[dict], today: dt.date, days: int = 7, seed: int = 0) -> list[dict]:
    """One entry per staff user per day for the last `days` days (today included), camelCase keys."""
    rng = random.Random(seed)
    entries = []
    for user in users:
        if user.get("role") != Role.STAFF.value:
            continue
        for i in range(days - 1, -1, -1):
            date_str = (today - dt.timedelta(days=i)).isoformat()
            clients = rng.randint(10, 29)
            sales = int(clients * (rng.random() * 0.4 + 0.1))  # 10-50% conversion
            entries.append({
                "id": f"{user['id']}-{date_str}",
                "userId": user["id"],
                "date": date_str,
                "clientsAttended": clients,
                "quotesSent": int(clients * 0.8),
                "followUps": rng.randint(5, 19),
                "salesClosed": sales,
                "amountSold": sales * rng.randint(500, 1499),
                "devicesSold": int(sales * 0.7),
                "exchanges": 1 if rng.random() > 0.8 else 0,
                "errors": 1 if rng.random() > 0.9 else 0,
                "punctualityScore": 5 if rng.random() > 0.1 else 4,
                "qualityScore": rng.randint(4, 5),
            })
    return entries


def fixture_rows(fixtures: dict, today: dt.date | None = None) -> dict[str, list[dict[str, Any]]]:
    """Fixture data per table, already mapped to persisted (snake_case) field names."""
    users = list(fixtures.get("users") or [])
    hist = fixtures.get("history") or {}
    history = generate_history(
        users,
        today or dt.date.today(),
        days=int(hist.get("days", 7)),
        seed=int(hist.get("random_seed", 0)),
    )
    raw = {
        APP_USERS: users,
        APP_TARGETS: [fixtures["targets"]] if fixtures.get("targets") else [],
        BONUS_RULES: list(fixtures.get("bonusRules") or []),
        KPI_ENTRIES: history,
    }
    return {table: [coerce(table, snake_keys(r)) for r in rows] for table, rows in raw.items()}


def ensure_seed_data(store: RecordStore, today: dt.date | None = None, fixtures: dict | None = None) -> list[str]:
    """Write fixtures into every seeded table whose key is absent. Existing tables, even empty, are kept."""
    pending = [t for t in SEEDED_TABLES if not store.exists(t)]
    if not pending:
        return []
    rows = fixture_rows(fixtures if fixtures is not None else load_fixtures(), today)
    for table in pending:
        store.write(table, rows[table])
        logger.info("seeded %s with %d rows", table, len(rows[table]))
    return pending
