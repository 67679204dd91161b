from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from battleplan.domain.entities.owner_image import OwnerImageEntity


class OwnerKindName(str, Enum):
    """Kinds of records that can carry images."""
    battles = "battles"
    boxes = "boxes"


class OwnerImageItem(BaseModel):
    """One image attached to a battle or a collection."""
    id: str = Field(..., description="Unique identifier of the image record", examples=["img_42"])
    owner_id: str = Field(..., description="ID of the battle or collection the image belongs to")
    image_url: str = Field(..., description="Public URL of the image", examples=["https://cdn.example.com/u1/a.jpg"])
    display_order: int = Field(..., description="Position of the image within its owner", ge=0)
    is_primary: bool = Field(..., description="Whether this is the owner's main image")
    user_id: str | None = Field(None, description="ID of the user who added the image")
    created_at: datetime | None = Field(None, description="ISO timestamp when the image was added")

    @classmethod
    def from_entity(cls, entity: OwnerImageEntity) -> "OwnerImageItem":
        return cls(
            id=entity.id,
            owner_id=entity.owner_id,
            image_url=entity.image_url,
            display_order=entity.display_order,
            is_primary=entity.is_primary,
            user_id=entity.user_id,
            created_at=entity.created_at,
        )


class ListOwnerImagesResponse(BaseModel):
    """Images of one owner, ascending by display order."""
    images: list[OwnerImageItem] = Field(..., description="Image records")
    total: int = Field(..., description="Number of images", ge=0)


class AddOwnerImageRequest(BaseModel):
    """Request model for attaching an already hosted image."""
    image_url: str = Field(..., min_length=1, description="Public URL of the image")
    is_primary: bool = Field(False, description="Make this the owner's main image")
    display_order: int | None = Field(
        None, ge=0, description="Position; defaults to after the last existing image"
    )


class UpdateOwnerImageRequest(BaseModel):
    """Partial update of an image record; omitted fields are left alone."""
    image_url: str | None = Field(None, min_length=1, description="New image URL")
    display_order: int | None = Field(None, ge=0, description="New position")
    is_primary: bool | None = Field(None, description="New primary flag")


class ReorderImagesRequest(BaseModel):
    """Image IDs in the desired display order."""
    image_ids: list[str] = Field(..., min_length=1, description="Ordered image IDs of this owner")


class ReorderImagesResponse(BaseModel):
    updated: int = Field(..., description="Number of image records whose order was written", ge=0)


class DeleteOwnerImageResponse(BaseModel):
    ok: bool = Field(True, description="Indicates whether the deletion was successful")


class CarouselPreferenceRequest(BaseModel):
    show_carousel: bool = Field(..., description="Rotate through collection and model images")


class CarouselPreferenceResponse(BaseModel):
    owner_id: str = Field(..., description="ID of the collection")
    show_carousel: bool = Field(..., description="Stored carousel preference")
