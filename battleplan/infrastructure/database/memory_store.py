from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from typing import Any

Row = dict[str, Any]


class MemoryStore:
    """Rows for the in-memory backend, one dict of rows per table.

    Used when Supabase is disabled or not configured. Rows are plain dicts
    keyed like the database columns so repositories can share their
    row-to-entity conversion across backends.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Row]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self.lock = threading.RLock()

    def table(self, name: str) -> dict[str, Row]:
        return self._tables[name]

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def insert(self, table: str, row: Row) -> Row:
        with self.lock:
            row = dict(row)
            row.setdefault("id", self.next_id(table))
            row["id"] = str(row["id"])
            self._tables[table][row["id"]] = row
            return row

    def clear(self) -> None:
        with self.lock:
            self._tables.clear()


_MEM_STORE = MemoryStore()


def get_memory_store() -> MemoryStore:
    return _MEM_STORE
