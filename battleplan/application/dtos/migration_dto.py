from __future__ import annotations

from pydantic import BaseModel, Field


class MigrationReportResponse(BaseModel):
    """Outcome of moving legacy ``image_url`` fields into the image tables."""
    owner_kind: str = Field(..., description="Owner kind that was migrated", examples=["battles"])
    success: bool = Field(..., description="True when no owner failed")
    migrated: int = Field(..., ge=0, description="Owners whose legacy image was moved")
    skipped: int = Field(..., ge=0, description="Owners left alone")
    total: int = Field(..., ge=0, description="Owners with a legacy image")
    errors: list[str] = Field(default_factory=list, description="One message per failed owner")
