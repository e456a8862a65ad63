"""Repository layer: whole-table persistence for the embedded store.

Only the query engine talks to a RecordStore; services go through the client.
"""
from __future__ import annotations

