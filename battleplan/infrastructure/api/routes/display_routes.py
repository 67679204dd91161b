from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from battleplan.application.dtos.common_dto import ErrorResponse
from battleplan.application.dtos.display_dto import DisplayImageResponse
from battleplan.application.dtos.owner_image_dto import (
    CarouselPreferenceRequest,
    CarouselPreferenceResponse,
    OwnerKindName,
)
from battleplan.application.use_cases.owner_access import authorize_owner
from battleplan.application.use_cases.resolve_display import ResolveDisplayImageUseCase
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.api.dependencies import get_box_repo, get_current_user, get_owner_repo, get_refresh_bus
from battleplan.infrastructure.api.errors import to_http_error
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository

router = APIRouter(
    tags=["Display"],
    responses={404: {"model": ErrorResponse, "description": "Not Found - Owner does not exist"}},
)


@router.get(
    "/{owner_kind}/{owner_id}/display",
    response_model=DisplayImageResponse,
    summary="Resolve Card Image",
    description="""
    Resolve what a card shows for a battle or a collection.

    The first match wins:
    1. the owner's own images, primary first
    2. the legacy `image_url` field
    3. images of the collection's models (collections only)
    4. the game's image, then the game's icon
    5. the placeholder

    For collections with the carousel preference on (or `force_carousel`),
    model images are appended to the owner's own images.
    """,
)
async def resolve_display_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    force_carousel: bool | None = Query(None, description="Override the stored carousel preference"),
    owners: OwnerRepository = Depends(get_owner_repo),
):
    uc = ResolveDisplayImageUseCase(owners=owners)
    try:
        resolved = uc.execute(owner_id, force_carousel=force_carousel)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return DisplayImageResponse(
        image_src=resolved.first,
        is_carousel=resolved.is_carousel,
        all_images=list(resolved.urls),
        total_images=len(resolved.urls),
        is_fallback=resolved.is_fallback,
        tier=resolved.tier.value,
    )


@router.patch(
    "/boxes/{owner_id}/carousel",
    response_model=CarouselPreferenceResponse,
    summary="Set Carousel Preference",
    description="""
    Turn the combined collection and model image carousel on or off.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def set_carousel_preference(
    owner_id: str,
    body: CarouselPreferenceRequest,
    user=Depends(get_current_user),
    boxes: OwnerRepository = Depends(get_box_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    try:
        authorize_owner(boxes, user.id, owner_id)
        owner = boxes.set_show_carousel(owner_id, body.show_carousel)
        if owner is None:
            raise LookupError("Collection not found")
    except Exception as exc:
        raise to_http_error(exc) from exc
    bus.publish(boxes.kind.name, owner_id)
    return CarouselPreferenceResponse(owner_id=owner.id, show_carousel=owner.show_carousel)
