from __future__ import annotations

import logging
from dataclasses import dataclass

from battleplan.domain.services.fallback_resolver import ResolvedCandidates, resolve_owner
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository

logger = logging.getLogger(__name__)


@dataclass
class ResolveDisplayImageUseCase:
    """Server-side resolution of what a card shows for one owner.

    Read failures never surface: the cascade simply continues with what
    could be loaded, down to the placeholder.
    """

    owners: OwnerRepository

    def execute(self, owner_id: str, *, force_carousel: bool | None = None) -> ResolvedCandidates:
        try:
            owner = self.owners.get_with_images(owner_id)
        except Exception:
            logger.exception("Failed to fetch %s %s with images", self.owners.kind.label, owner_id)
            return resolve_owner(None)
        if owner is None:
            raise LookupError(f"{self.owners.kind.label.capitalize()} not found")

        child_images: list[str] = []
        if self.owners.kind.has_children:
            try:
                child_images = self.owners.list_child_images(owner_id)
            except Exception:
                logger.exception("Failed to fetch child images for %s %s", self.owners.kind.label, owner_id)
        return resolve_owner(owner, child_images=child_images, force_carousel=force_carousel)
