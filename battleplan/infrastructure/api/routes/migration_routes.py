from __future__ import annotations

from fastapi import APIRouter, Depends

from battleplan.application.dtos.common_dto import ErrorResponse
from battleplan.application.dtos.migration_dto import MigrationReportResponse
from battleplan.application.dtos.owner_image_dto import OwnerKindName
from battleplan.application.use_cases.migrate_legacy_images import MigrateLegacyImagesUseCase
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.api.dependencies import get_image_repo, get_owner_repo, get_refresh_bus, require_operator
from battleplan.infrastructure.api.errors import to_http_error
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository

router = APIRouter(
    prefix="/migrations",
    tags=["Migrations"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
        403: {"model": ErrorResponse, "description": "Forbidden - Caller is not a migration operator"},
    },
)


@router.post(
    "/{owner_kind}/legacy-images",
    response_model=MigrationReportResponse,
    summary="Migrate Legacy Images",
    description="""
    Move every legacy single `image_url` of one owner kind into its image table.
    This is an operator endpoint: it touches every account's owners.

    Owners that already have image records, or whose legacy value is not a
    usable URL, are skipped. A failure on one owner is reported and the run
    continues. Running it twice is harmless.

    **Authentication required**: Yes (Bearer token of a user listed in
    `MIGRATION_ADMIN_USER_IDS`)
    """,
)
async def migrate_legacy_images(
    owner_kind: OwnerKindName,
    user=Depends(require_operator),
    owners: OwnerRepository = Depends(get_owner_repo),
    images: OwnerImageRepository = Depends(get_image_repo),
    bus: RefreshBus = Depends(get_refresh_bus),
):
    uc = MigrateLegacyImagesUseCase(owners=owners, images=images, bus=bus)
    try:
        report = uc.execute()
    except Exception as exc:
        raise to_http_error(exc) from exc
    return MigrationReportResponse(
        owner_kind=report.owner_kind,
        success=report.success,
        migrated=report.migrated,
        skipped=report.skipped,
        total=report.total,
        errors=report.errors,
    )
