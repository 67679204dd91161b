from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import Any, Iterable

from supabase import Client

from battleplan.domain.entities.owner import OwnerKind
from battleplan.domain.entities.owner_image import OwnerImageEntity
from battleplan.infrastructure.database.memory_store import MemoryStore, get_memory_store
from battleplan.infrastructure.database.postgres_client import get_postgres_client

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"image_url", "display_order", "is_primary"})


class OwnerImageRepository:
    """Ordered image records of one owner kind (``battle_images``/``box_images``)."""

    def __init__(self, client: Client | None, kind: OwnerKind, store: MemoryStore | None = None) -> None:
        self.client = client
        self.kind = kind
        self.table = kind.image_table
        self.fk = kind.owner_column
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self.store = store or get_memory_store()

    @property
    def in_memory(self) -> bool:
        return self.disabled or self.client is None

    def _row_to_entity(self, row: dict) -> OwnerImageEntity:
        """Convert database row to OwnerImageEntity."""
        # PostgreSQL returns datetime objects, Supabase returns ISO strings
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return OwnerImageEntity(
            id=str(row["id"]),
            owner_id=str(row[self.fk]),
            image_url=row["image_url"],
            display_order=row.get("display_order") or 0,
            is_primary=bool(row.get("is_primary")),
            user_id=row.get("user_id"),
            created_at=created_at,
        )

    def _mem_rows(self, owner_id: str) -> list[dict]:
        rows = [row for row in self.store.table(self.table).values() if str(row[self.fk]) == str(owner_id)]
        return sorted(rows, key=lambda r: r["display_order"])

    def list_by_owner(self, owner_id: str) -> list[OwnerImageEntity]:
        """All images of an owner in ascending ``display_order``."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            query = f"SELECT * FROM {self.table} WHERE {self.fk} = %s ORDER BY display_order"
            rows = self.pg_client.execute_many(query, (owner_id,))
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self.in_memory:
            return [self._row_to_entity(row) for row in self._mem_rows(owner_id)]

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table(self.table)
                .select("*")
                .eq(self.fk, owner_id)
                .order("display_order")
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB list {self.table} failed: {exc}") from exc

    def get(self, image_id: str) -> OwnerImageEntity | None:
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one(f"SELECT * FROM {self.table} WHERE id = %s", (image_id,))
            return self._row_to_entity(row) if row else None

        if self.in_memory:
            row = self.store.table(self.table).get(str(image_id))
            return self._row_to_entity(row) if row else None

        try:  # pragma: no cover - network
            res = self.client.table(self.table).select("*").eq("id", image_id).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB get {self.table} failed: {exc}") from exc

    def next_display_order(self, owner_id: str) -> int:
        """``max(display_order) + 1`` for the owner, or 0 when it has no images."""
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one(
                f"SELECT COALESCE(MAX(display_order) + 1, 0) AS next_order FROM {self.table} WHERE {self.fk} = %s",
                (owner_id,),
            )
            return int(row["next_order"]) if row else 0

        if self.in_memory:
            rows = self._mem_rows(owner_id)
            return rows[-1]["display_order"] + 1 if rows else 0

        try:  # pragma: no cover - network
            res = (
                self.client.table(self.table)
                .select("display_order")
                .eq(self.fk, owner_id)
                .order("display_order", desc=True)
                .limit(1)
                .execute()
            )
            rows = res.data or []
            return rows[0]["display_order"] + 1 if rows else 0
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB read {self.table} display order failed: {exc}") from exc

    def add(
        self,
        owner_id: str,
        image_url: str,
        user_id: str | None,
        is_primary: bool = False,
        display_order: int | None = None,
    ) -> OwnerImageEntity:
        """Insert one image record.

        Raises:
            ValueError: If the URL is empty or the display order negative.
            PermissionError: If there is no authenticated user.
            RuntimeError: If the backend rejects the insert.
        """
        if not image_url or not image_url.strip():
            raise ValueError("Image URL is required")
        if not user_id:
            raise PermissionError("User not authenticated")
        if display_order is None:
            display_order = self.next_display_order(owner_id)
        elif display_order < 0:
            raise ValueError("Display order must not be negative")
        now = datetime.now(UTC)

        if self.use_local_db and self.pg_client:
            try:
                query = f"""
                    INSERT INTO {self.table} ({self.fk}, image_url, display_order, is_primary, user_id, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING *
                """
                row = self.pg_client.execute_insert(
                    query, (owner_id, image_url, display_order, is_primary, user_id, now)
                )
                return self._row_to_entity(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert {self.table} failed: {exc}") from exc

        if self.in_memory:
            row = self.store.insert(
                self.table,
                {
                    "id": self.store.next_id("img"),
                    self.fk: str(owner_id),
                    "image_url": image_url,
                    "display_order": display_order,
                    "is_primary": is_primary,
                    "user_id": user_id,
                    "created_at": now,
                },
            )
            return self._row_to_entity(row)

        try:  # pragma: no cover - network
            data = {
                self.fk: owner_id,
                "image_url": image_url,
                "display_order": display_order,
                "is_primary": is_primary,
                "user_id": user_id,
            }
            res = self.client.table(self.table).insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB insert {self.table} failed: {exc}") from exc

    def update(self, image_id: str, fields: dict[str, Any]) -> OwnerImageEntity | None:
        """Patch some fields of one record; ``None`` when it does not exist."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "image_url" in fields and not (fields["image_url"] or "").strip():
            raise ValueError("Image URL is required")
        if fields.get("display_order") is not None and fields["display_order"] < 0:
            raise ValueError("Display order must not be negative")
        if not fields:
            return self.get(image_id)

        if self.use_local_db and self.pg_client:
            columns = sorted(fields)
            assignments = ", ".join(f"{column} = %s" for column in columns)
            try:
                rows = self.pg_client.execute_many(
                    f"UPDATE {self.table} SET {assignments} WHERE id = %s RETURNING *",
                    (*[fields[column] for column in columns], image_id),
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update {self.table} failed: {exc}") from exc
            return self._row_to_entity(rows[0]) if rows else None

        if self.in_memory:
            with self.store.lock:
                row = self.store.table(self.table).get(str(image_id))
                if row is None:
                    return None
                row.update(fields)
                return self._row_to_entity(row)

        try:  # pragma: no cover - network
            res = self.client.table(self.table).update(fields).eq("id", image_id).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB update {self.table} failed: {exc}") from exc

    def delete(self, image_id: str) -> bool:
        if self.use_local_db and self.pg_client:
            affected = self.pg_client.execute_update(f"DELETE FROM {self.table} WHERE id = %s", (image_id,))
            return affected > 0

        if self.in_memory:
            return self.store.table(self.table).pop(str(image_id), None) is not None

        try:  # pragma: no cover - network
            res = self.client.table(self.table).delete().eq("id", image_id).execute()
            return bool(res.data)
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB delete {self.table} failed: {exc}") from exc

    def delete_by_owner(self, owner_id: str) -> int:
        """Remove every image of an owner; used when the owner itself goes away."""
        if self.use_local_db and self.pg_client:
            return self.pg_client.execute_update(f"DELETE FROM {self.table} WHERE {self.fk} = %s", (owner_id,))

        if self.in_memory:
            with self.store.lock:
                table = self.store.table(self.table)
                doomed = [row["id"] for row in self._mem_rows(owner_id)]
                for image_id in doomed:
                    del table[image_id]
                return len(doomed)

        try:  # pragma: no cover - network
            res = self.client.table(self.table).delete().eq(self.fk, owner_id).execute()
            return len(res.data or [])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB delete {self.table} by owner failed: {exc}") from exc

    def set_primary(self, image_id: str) -> OwnerImageEntity | None:
        """Make one record the primary image of its owner.

        Every sibling loses its ``is_primary`` flag so an owner never ends
        up with two primaries. Returns ``None`` if the image does not exist.

        PostgreSQL and the in-memory store do this atomically. Over PostgREST
        it takes two requests: siblings are cleared first, then the target is
        flagged. If the second request fails the owner is left with no
        flagged primary, which readers handle by falling back to the lowest
        ``display_order``.
        """
        if self.use_local_db and self.pg_client:
            query = f"""
                UPDATE {self.table} SET is_primary = (id = %s)
                WHERE {self.fk} = (SELECT {self.fk} FROM {self.table} WHERE id = %s)
                RETURNING *
            """
            try:
                rows = self.pg_client.execute_many(query, (image_id, image_id))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL set primary {self.table} failed: {exc}") from exc
            target = next((row for row in rows if str(row["id"]) == str(image_id)), None)
            return self._row_to_entity(target) if target else None

        if self.in_memory:
            with self.store.lock:
                target = self.store.table(self.table).get(str(image_id))
                if target is None:
                    return None
                for row in self._mem_rows(target[self.fk]):
                    row["is_primary"] = row["id"] == target["id"]
                return self._row_to_entity(target)

        current = self.get(image_id)
        if current is None:
            return None
        try:
            (
                self.client.table(self.table)
                .update({"is_primary": False})
                .eq(self.fk, current.owner_id)
                .neq("id", image_id)
                .execute()
            )
            res = self.client.table(self.table).update({"is_primary": True}).eq("id", image_id).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB set primary {self.table} failed: {exc}") from exc

    def reorder(self, owner_id: str, ordered_ids: Iterable[str]) -> int:
        """Assign ``display_order = position`` to each listed image.

        Each update is also filtered by owner, so ids belonging to another
        owner are left untouched. Returns the number of records updated.
        """
        ordered_ids = [str(image_id) for image_id in ordered_ids]

        if self.use_local_db and self.pg_client:
            query = f"UPDATE {self.table} SET display_order = %s WHERE id = %s AND {self.fk} = %s"
            try:
                return self.pg_client.execute_batch(
                    query, [(index, image_id, owner_id) for index, image_id in enumerate(ordered_ids)]
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL reorder {self.table} failed: {exc}") from exc

        if self.in_memory:
            updated = 0
            with self.store.lock:
                table = self.store.table(self.table)
                for index, image_id in enumerate(ordered_ids):
                    row = table.get(image_id)
                    if row is None or str(row[self.fk]) != str(owner_id):
                        logger.warning("Ignoring image %s while reordering %s %s", image_id, self.kind.name, owner_id)
                        continue
                    row["display_order"] = index
                    updated += 1
            return updated

        updated = 0
        try:  # pragma: no cover - network
            for index, image_id in enumerate(ordered_ids):
                res = (
                    self.client.table(self.table)
                    .update({"display_order": index})
                    .eq("id", image_id)
                    .eq(self.fk, owner_id)
                    .execute()
                )
                updated += len(res.data or [])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB reorder {self.table} failed: {exc}") from exc
        return updated

    def get_primary(self, owner_id: str) -> OwnerImageEntity | None:
        """Flagged primary image, else the lowest ``display_order``, else ``None``."""
        images = self.list_by_owner(owner_id)
        if not images:
            return None
        return next((img for img in images if img.is_primary), images[0])
