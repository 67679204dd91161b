from __future__ import annotations

from pydantic import BaseModel, Field


class DisplayImageResponse(BaseModel):
    """What a card should show for a battle or collection."""
    image_src: str = Field(..., description="Image to show first", examples=["https://cdn.example.com/u1/a.jpg"])
    is_carousel: bool = Field(..., description="True when more than one image should rotate")
    all_images: list[str] = Field(..., description="Every candidate image in display order")
    total_images: int = Field(..., description="Number of candidate images", ge=1)
    is_fallback: bool = Field(..., description="True when the image comes from the game or the placeholder")
    tier: str = Field(..., description="Cascade tier the images were resolved from", examples=["own_images"])
