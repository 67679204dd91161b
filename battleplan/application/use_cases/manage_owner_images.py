from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from battleplan.application.use_cases.owner_access import authorize_owner, require_owned_image
from battleplan.domain.entities.owner_image import OwnerImageEntity
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository

logger = logging.getLogger(__name__)


@dataclass
class _OwnerImageUseCase:
    owners: OwnerRepository
    images: OwnerImageRepository
    bus: RefreshBus | None = None

    def _publish(self, owner_id: str) -> None:
        if self.bus is not None:
            self.bus.publish(self.owners.kind.name, owner_id)


@dataclass
class AddOwnerImageUseCase(_OwnerImageUseCase):
    """Attach an already hosted image to a battle or collection."""

    def execute(
        self,
        user_id: str | None,
        owner_id: str,
        image_url: str,
        *,
        is_primary: bool = False,
        display_order: int | None = None,
    ) -> OwnerImageEntity:
        authorize_owner(self.owners, user_id, owner_id)
        entity = self.images.add(
            owner_id=owner_id,
            image_url=image_url,
            user_id=user_id,
            is_primary=is_primary,
            display_order=display_order,
        )
        if is_primary:
            entity = self.images.set_primary(entity.id) or entity
        logger.info("Added image %s to %s %s", entity.id, self.owners.kind.label, owner_id)
        self._publish(owner_id)
        return entity


@dataclass
class UpdateOwnerImageUseCase(_OwnerImageUseCase):
    def execute(self, user_id: str | None, owner_id: str, image_id: str, fields: dict[str, Any]) -> OwnerImageEntity:
        authorize_owner(self.owners, user_id, owner_id)
        require_owned_image(self.images, owner_id, image_id)
        # the primary flag goes through set_primary so siblings get cleared
        fields = dict(fields)
        make_primary = fields.pop("is_primary", None)
        entity = self.images.update(image_id, fields)
        if make_primary:
            entity = self.images.set_primary(image_id)
        elif make_primary is False:
            entity = self.images.update(image_id, {"is_primary": False})
        if entity is None:
            raise LookupError("Image not found or access denied")
        self._publish(owner_id)
        return entity


@dataclass
class DeleteOwnerImageUseCase(_OwnerImageUseCase):
    def execute(self, user_id: str | None, owner_id: str, image_id: str) -> bool:
        authorize_owner(self.owners, user_id, owner_id)
        require_owned_image(self.images, owner_id, image_id)
        ok = self.images.delete(image_id)
        if ok:
            logger.info("Deleted image %s from %s %s", image_id, self.owners.kind.label, owner_id)
            self._publish(owner_id)
        return ok


@dataclass
class SetPrimaryImageUseCase(_OwnerImageUseCase):
    def execute(self, user_id: str | None, owner_id: str, image_id: str) -> OwnerImageEntity:
        authorize_owner(self.owners, user_id, owner_id)
        require_owned_image(self.images, owner_id, image_id)
        entity = self.images.set_primary(image_id)
        if entity is None:
            raise LookupError("Image not found or access denied")
        self._publish(owner_id)
        return entity


@dataclass
class ReorderOwnerImagesUseCase(_OwnerImageUseCase):
    def execute(self, user_id: str | None, owner_id: str, image_ids: list[str]) -> int:
        """Write the new order; returns how many records were updated.

        IDs that do not belong to the owner are skipped by the repository.
        """
        authorize_owner(self.owners, user_id, owner_id)
        updated = self.images.reorder(owner_id, image_ids)
        if updated != len(image_ids):
            logger.warning(
                "Reorder of %s %s touched %d of %d images", self.owners.kind.label, owner_id, updated, len(image_ids)
            )
        self._publish(owner_id)
        return updated
