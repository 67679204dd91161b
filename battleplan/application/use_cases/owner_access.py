from __future__ import annotations

from battleplan.domain.entities.owner import OwnerWithImages
from battleplan.domain.entities.owner_image import OwnerImageEntity
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository


def authorize_owner(owners: OwnerRepository, user_id: str | None, owner_id: str) -> OwnerWithImages:
    """Load an owner the user may change.

    Owners without a recorded user are open to any authenticated user.

    Raises:
        PermissionError: If there is no authenticated user.
        LookupError: If the owner does not exist or belongs to someone else.
    """
    if not user_id:
        raise PermissionError("User not authenticated")
    owner = owners.get(owner_id)
    if owner is None or (owner.user_id and owner.user_id != user_id):
        raise LookupError(f"{owners.kind.label.capitalize()} not found or access denied")
    return owner


def require_owned_image(images: OwnerImageRepository, owner_id: str, image_id: str) -> OwnerImageEntity:
    """Load an image and check it is attached to ``owner_id``."""
    entity = images.get(image_id)
    if entity is None or entity.owner_id != str(owner_id):
        raise LookupError("Image not found or access denied")
    return entity
