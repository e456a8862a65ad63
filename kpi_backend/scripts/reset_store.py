"""
Reset tables of the embedded store back to their seed fixtures.

WARNING: This DROPS the selected table keys (default: every seeded table),
then re-runs the seeder so they are rebuilt from fixtures. audit_logs is
never dropped unless named explicitly.

Usage:
  python -m kpi_backend.scripts.reset_store
  python -m kpi_backend.scripts.reset_store --tables bonus_rules app_targets
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from kpi_backend.client import LocalClient
from kpi_backend.db import get_db_path
from kpi_backend.logs import LogContext
from kpi_backend.repository.record_store import SqliteRecordStore
from kpi_backend.services.seed_svc import SEEDED_TABLES


async def _audit(client: LocalClient, tables: list[str], seeded: list[str]) -> None:
    log = LogContext(client, "RESET_STORE")
    log.set_details(f"dropped={','.join(tables)} seeded={','.join(seeded)}")
    await log.write("OK")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--db", default=None, help="SQLite path (defaults to the configured DB)")
    ap.add_argument("--tables", nargs="*", default=list(SEEDED_TABLES))
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO)

    store = SqliteRecordStore(args.db or get_db_path())
    # destructive reset
    for t in args.tables:
        store.drop(t)

    client = LocalClient(store)
    asyncio.run(_audit(client, args.tables, client.seeded))
    print({"message": "ok", "dropped": args.tables, "seeded": client.seeded})


if __name__ == "__main__":
    main()
