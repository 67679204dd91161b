from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from battleplan.application.dtos.common_dto import ErrorResponse
from battleplan.application.dtos.owner_image_dto import (
    AddOwnerImageRequest,
    DeleteOwnerImageResponse,
    ListOwnerImagesResponse,
    OwnerImageItem,
    OwnerKindName,
    ReorderImagesRequest,
    ReorderImagesResponse,
    UpdateOwnerImageRequest,
)
from battleplan.application.use_cases.manage_owner_images import (
    AddOwnerImageUseCase,
    DeleteOwnerImageUseCase,
    ReorderOwnerImagesUseCase,
    SetPrimaryImageUseCase,
    UpdateOwnerImageUseCase,
)
from battleplan.application.use_cases.upload_image import UploadOwnerImageUseCase
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.api.dependencies import (
    get_current_user,
    get_image_repo,
    get_owner_repo,
    get_refresh_bus,
    get_storage,
)
from battleplan.infrastructure.api.errors import to_http_error
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository
from battleplan.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/{owner_kind}/{owner_id}/images",
    tags=["Owner Images"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid image or request value"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
        404: {"model": ErrorResponse, "description": "Not Found - Owner or image does not exist or user doesn't have access"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


@router.get(
    "",
    response_model=ListOwnerImagesResponse,
    summary="List Owner Images",
    description="""
    List every image attached to a battle or a collection.

    Images are returned in ascending `display_order`. No authentication is
    needed: cards are shown to everyone.
    """,
)
async def list_owner_images(
    owner_kind: OwnerKindName,
    owner_id: str,
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
):
    """Get all images of one owner."""
    try:
        if owners.get(owner_id) is None:
            raise LookupError(f"{owners.kind.label.capitalize()} not found")
        items = images.list_by_owner(owner_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return ListOwnerImagesResponse(images=[OwnerImageItem.from_entity(it) for it in items], total=len(items))


@router.get(
    "/primary",
    response_model=OwnerImageItem,
    summary="Get Primary Image",
    description="""
    Get the owner's primary image.

    Falls back to the image with the lowest `display_order` when none is
    flagged. Returns 404 when the owner has no images at all.
    """,
)
async def get_primary_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    images: OwnerImageRepository = Depends(get_image_repo),
):
    try:
        entity = images.get_primary(owner_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    if entity is None:
        raise HTTPException(status_code=404, detail="No images for this owner")
    return OwnerImageItem.from_entity(entity)


@router.post(
    "",
    response_model=OwnerImageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Add Image",
    description="""
    Attach an already hosted image URL to a battle or a collection.

    Without `display_order` the image goes after the last existing one.
    With `is_primary` set, every other image of the owner loses its
    primary flag.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={400: {"description": "Bad Request - Empty URL or negative order"}},
)
async def add_owner_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    body: AddOwnerImageRequest,
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = AddOwnerImageUseCase(owners=owners, images=images, bus=bus)
    try:
        entity = uc.execute(
            user.id,
            owner_id,
            body.image_url,
            is_primary=body.is_primary,
            display_order=body.display_order,
        )
    except Exception as exc:
        raise to_http_error(exc) from exc
    return OwnerImageItem.from_entity(entity)


@router.post(
    "/upload",
    response_model=OwnerImageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Image",
    description="""
    Upload an image file and attach it to a battle or a collection.

    **Supported formats**: JPEG, PNG, WEBP, JFIF
    **Authentication required**: Yes (Bearer token)

    The file is:
    - Downscaled to fit 1200x1200 and re-encoded
    - Stored under the user's folder in the images bucket
    - Appended after the owner's existing images
    - Made primary if the owner had no images yet
    """,
    responses={400: {"description": "Bad Request - Invalid image file or unsupported format"}},
)
async def upload_owner_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    file: UploadFile = File(..., description="Image file to upload"),
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    storage: SupabaseStorage = Depends(get_storage),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    data = await file.read()
    uc = UploadOwnerImageUseCase(storage=storage, owners=owners, images=images, bus=bus)
    try:
        entity = uc.execute(user.id, owner_id, data, filename=file.filename, content_type=file.content_type)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return OwnerImageItem.from_entity(entity)


@router.put(
    "/order",
    response_model=ReorderImagesResponse,
    summary="Reorder Images",
    description="""
    Rewrite `display_order` from the position of each ID in `image_ids`.

    IDs that do not belong to this owner are ignored.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def reorder_owner_images(
    owner_kind: OwnerKindName,
    owner_id: str,
    body: ReorderImagesRequest,
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = ReorderOwnerImagesUseCase(owners=owners, images=images, bus=bus)
    try:
        updated = uc.execute(user.id, owner_id, body.image_ids)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return ReorderImagesResponse(updated=updated)


@router.patch(
    "/{image_id}",
    response_model=OwnerImageItem,
    summary="Update Image",
    description="""
    Change the URL, position or primary flag of one image.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def update_owner_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    image_id: str,
    body: UpdateOwnerImageRequest,
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = UpdateOwnerImageUseCase(owners=owners, images=images, bus=bus)
    try:
        entity = uc.execute(user.id, owner_id, image_id, body.model_dump(exclude_none=True))
    except Exception as exc:
        raise to_http_error(exc) from exc
    return OwnerImageItem.from_entity(entity)


@router.delete(
    "/{image_id}",
    response_model=DeleteOwnerImageResponse,
    summary="Delete Image",
    description="""
    Detach one image from its owner.

    The stored file is left alone: the same URL may still be referenced
    elsewhere.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def delete_owner_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    image_id: str,
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = DeleteOwnerImageUseCase(owners=owners, images=images, bus=bus)
    try:
        ok = uc.execute(user.id, owner_id, image_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return DeleteOwnerImageResponse(ok=ok)


@router.post(
    "/{image_id}/primary",
    response_model=OwnerImageItem,
    summary="Set Primary Image",
    description="""
    Make one image the owner's primary image and clear the flag on all others.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def set_primary_image(
    owner_kind: OwnerKindName,
    owner_id: str,
    image_id: str,
    user=Depends(get_current_user),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = SetPrimaryImageUseCase(owners=owners, images=images, bus=bus)
    try:
        entity = uc.execute(user.id, owner_id, image_id)
    except Exception as exc:
        raise to_http_error(exc) from exc
    return OwnerImageItem.from_entity(entity)
