from __future__ import annotations

import logging
import os
from typing import Any, Iterable

from supabase import Client

from battleplan.domain.entities.owner import GameEntity, OwnerKind, OwnerWithImages
from battleplan.domain.services.fallback_resolver import pick_child_image
from battleplan.infrastructure.cache.ttl_cache import TTLCache
from battleplan.infrastructure.database.memory_store import MemoryStore, get_memory_store
from battleplan.infrastructure.database.postgres_client import get_postgres_client
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository

logger = logging.getLogger(__name__)

_CHILD_IMAGES_SQL = """
    SELECT m.id, m.image_url,
           COALESCE(
               json_agg(json_build_object('image_url', mi.image_url, 'is_primary', mi.is_primary))
               FILTER (WHERE mi.id IS NOT NULL),
               '[]'
           ) AS model_images
    FROM model_boxes mb
    JOIN models m ON m.id = mb.model_id
    LEFT JOIN model_images mi ON mi.model_id = m.id
    WHERE mb.box_id = %s
    GROUP BY m.id, m.image_url
"""


class OwnerRepository:
    """Battles and boxes as image owners, joined with their parent game."""

    def __init__(
        self,
        client: Client | None,
        kind: OwnerKind,
        store: MemoryStore | None = None,
        game_cache: TTLCache[GameEntity] | None = None,
    ) -> None:
        self.client = client
        self.kind = kind
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self.store = store or get_memory_store()
        self.game_cache = game_cache
        self.images = OwnerImageRepository(client, kind, store=self.store)

    @property
    def in_memory(self) -> bool:
        return self.disabled or self.client is None

    def _row_to_owner(self, row: dict, images: Iterable = (), game: GameEntity | None = None) -> OwnerWithImages:
        game_id = row.get(self.kind.game_column)
        return OwnerWithImages(
            id=str(row["id"]),
            kind=self.kind,
            image_url=row.get("image_url"),
            user_id=row.get("user_id"),
            game_id=str(game_id) if game_id is not None else None,
            show_carousel=bool(row.get("show_carousel")) if self.kind.has_carousel_preference else False,
            images=tuple(images),
            game=game,
        )

    def _get_row(self, owner_id: str) -> dict | None:
        table = self.kind.owner_table
        if self.use_local_db and self.pg_client:
            return self.pg_client.execute_one(f"SELECT * FROM {table} WHERE id = %s", (owner_id,))

        if self.in_memory:
            row = self.store.table(table).get(str(owner_id))
            return dict(row) if row else None

        try:  # pragma: no cover - network
            res = self.client.table(table).select("*").eq("id", owner_id).limit(1).execute()
            rows = res.data or []
            return rows[0] if rows else None
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB get {table} failed: {exc}") from exc

    def get(self, owner_id: str) -> OwnerWithImages | None:
        """Owner row only, without images or game."""
        row = self._get_row(owner_id)
        return self._row_to_owner(row) if row else None

    def get_with_images(self, owner_id: str) -> OwnerWithImages | None:
        """Owner with its image records and parent game in one call.

        Returns ``None`` if the owner does not exist.
        """
        row = self._get_row(owner_id)
        if row is None:
            return None
        images = self.images.list_by_owner(owner_id)
        try:
            game = self.get_game(row.get(self.kind.game_column))
        except Exception:
            logger.exception("Failed to load game for %s %s", self.kind.label, owner_id)
            game = None
        return self._row_to_owner(row, images, game)

    def get_game(self, game_id: Any) -> GameEntity | None:
        if game_id is None or game_id == "":
            return None
        game_id = str(game_id)
        if self.game_cache is None:
            return self._load_game(game_id)
        return self.game_cache.get_or_load(game_id, lambda: self._load_game(game_id))

    def _load_game(self, game_id: str) -> GameEntity | None:
        row: dict | None
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one("SELECT id, name, image, icon FROM games WHERE id = %s", (game_id,))
        elif self.in_memory:
            row = self.store.table("games").get(game_id)
        else:
            try:  # pragma: no cover - network
                res = self.client.table("games").select("id, name, image, icon").eq("id", game_id).limit(1).execute()
                rows = res.data or []
                row = rows[0] if rows else None
            except Exception as exc:  # pragma: no cover - network
                logger.warning("Could not load game %s: %s", game_id, exc)
                row = None
        if not row:
            return None
        return GameEntity(id=str(row["id"]), name=row.get("name"), image=row.get("image"), icon=row.get("icon"))

    def list_child_images(self, owner_id: str) -> list[str]:
        """One image URL per child model of the owner, in fetch order."""
        if not self.kind.has_children:
            return []

        if self.use_local_db and self.pg_client:
            models = self.pg_client.execute_many(_CHILD_IMAGES_SQL, (owner_id,))
        elif self.in_memory:
            models = self._mem_child_models(owner_id)
        else:
            try:  # pragma: no cover - network
                res = (
                    self.client.table("model_boxes")
                    .select("model:models(id, image_url, model_images(id, image_url, is_primary))")
                    .eq("box_id", owner_id)
                    .execute()
                )
                models = [row.get("model") for row in res.data or []]
            except Exception as exc:  # pragma: no cover - network
                raise RuntimeError(f"DB list child images failed: {exc}") from exc

        urls: list[str] = []
        seen: set[str] = set()
        for model in models:
            if not model or str(model["id"]) in seen:
                continue
            seen.add(str(model["id"]))
            url = pick_child_image(model.get("image_url"), model.get("model_images"))
            if url:
                urls.append(url)
        return urls

    def _mem_child_models(self, owner_id: str) -> list[dict]:
        models = self.store.table("models")
        model_images = list(self.store.table("model_images").values())
        result = []
        for link in self.store.table("model_boxes").values():
            if str(link["box_id"]) != str(owner_id):
                continue
            model = models.get(str(link["model_id"]))
            if model is None:
                continue
            images = [img for img in model_images if str(img["model_id"]) == str(model["id"])]
            result.append({**model, "model_images": images})
        return result

    def set_show_carousel(self, owner_id: str, show_carousel: bool) -> OwnerWithImages | None:
        if not self.kind.has_carousel_preference:
            raise ValueError(f"{self.kind.name} have no carousel preference")
        table = self.kind.owner_table

        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many(
                f"UPDATE {table} SET show_carousel = %s WHERE id = %s RETURNING *", (show_carousel, owner_id)
            )
            return self._row_to_owner(rows[0]) if rows else None

        if self.in_memory:
            with self.store.lock:
                row = self.store.table(table).get(str(owner_id))
                if row is None:
                    return None
                row["show_carousel"] = show_carousel
                return self._row_to_owner(row)

        try:  # pragma: no cover - network
            res = self.client.table(table).update({"show_carousel": show_carousel}).eq("id", owner_id).execute()
            rows = res.data or []
            return self._row_to_owner(rows[0]) if rows else None
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB update {table} carousel preference failed: {exc}") from exc

    def list_with_legacy_image(self) -> list[OwnerWithImages]:
        """Owners whose legacy ``image_url`` column still holds something."""
        table = self.kind.owner_table
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many(
                f"SELECT * FROM {table} WHERE image_url IS NOT NULL AND image_url <> '' AND image_url <> 'null'"
            )
        elif self.in_memory:
            rows = [
                row
                for row in self.store.table(table).values()
                if row.get("image_url") not in (None, "", "null")
            ]
        else:
            try:  # pragma: no cover - network
                res = (
                    self.client.table(table)
                    .select("*")
                    .not_.is_("image_url", "null")
                    .neq("image_url", "")
                    .neq("image_url", "null")
                    .execute()
                )
                rows = res.data or []
            except Exception as exc:  # pragma: no cover - network
                raise RuntimeError(f"DB list {table} legacy images failed: {exc}") from exc
        return [self._row_to_owner(row) for row in rows]

    def clear_legacy_image(self, owner_id: str) -> bool:
        table = self.kind.owner_table
        if self.use_local_db and self.pg_client:
            return self.pg_client.execute_update(f"UPDATE {table} SET image_url = NULL WHERE id = %s", (owner_id,)) > 0

        if self.in_memory:
            with self.store.lock:
                row = self.store.table(table).get(str(owner_id))
                if row is None:
                    return False
                row["image_url"] = None
                return True

        try:  # pragma: no cover - network
            res = self.client.table(table).update({"image_url": None}).eq("id", owner_id).execute()
            return bool(res.data)
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"DB clear {table} legacy image failed: {exc}") from exc
