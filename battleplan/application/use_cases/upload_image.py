from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from battleplan.application.use_cases.owner_access import authorize_owner
from battleplan.domain.entities.owner_image import OwnerImageEntity
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository
from battleplan.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)

SUPPORTED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/jfif",
        "application/octet-stream",  # phones upload odd names such as photo.mp.jpg
    }
)
_IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|webp|mp\.jpg|jfif)$", re.IGNORECASE)


def is_valid_image_file(filename: str | None, content_type: str | None) -> bool:
    """Accept a supported MIME type or, failing that, a known extension."""
    if content_type and content_type.lower() in SUPPORTED_CONTENT_TYPES:
        return True
    return bool(filename and _IMAGE_EXTENSION.search(filename))


@dataclass
class UploadOwnerImageUseCase:
    storage: SupabaseStorage
    owners: OwnerRepository
    images: OwnerImageRepository
    bus: RefreshBus | None = None

    def execute(
        self,
        user_id: str | None,
        owner_id: str,
        data: bytes,
        *,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> OwnerImageEntity:
        """
        Upload a new image file and attach it to an owner.

        The file is compressed, stored under the user's folder and appended
        after the owner's existing images. The first image an owner gets
        becomes its primary image.

        Raises:
            ValueError: If the file is not a supported image
            LookupError: If the owner does not exist or belongs to someone else
        """
        authorize_owner(self.owners, user_id, owner_id)
        if not is_valid_image_file(filename, content_type):
            raise ValueError(f"Unsupported image type: {content_type or filename}")

        is_first = not self.images.list_by_owner(owner_id)
        stored = self.storage.upload_image(user_id=user_id, data=data)
        try:
            entity = self.images.add(
                owner_id=owner_id,
                image_url=stored.url,
                user_id=user_id,
                is_primary=is_first,
            )
        except Exception:
            self.storage.delete(stored.path)
            raise
        logger.info(
            "Uploaded %s (%dx%d, %d bytes) for %s %s",
            stored.path,
            stored.width,
            stored.height,
            stored.size,
            self.owners.kind.label,
            owner_id,
        )
        if self.bus is not None:
            self.bus.publish(self.owners.kind.name, owner_id)
        return entity
