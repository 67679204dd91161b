from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class OwnerImageEntity:
    id: str
    owner_id: str  # battle_id or box_id depending on the owner kind
    image_url: str
    display_order: int = 0
    is_primary: bool = False
    user_id: str | None = None  # creator
    created_at: datetime | None = None
