from __future__ import annotations

import logging
from dataclasses import dataclass, field

from battleplan.domain.services.fallback_resolver import is_usable_url
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    owner_kind: str
    migrated: int = 0
    skipped: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class MigrateLegacyImagesUseCase:
    """
    Move legacy single ``image_url`` fields into the image tables.

    For every owner still carrying a legacy image:
    - owners that already have image records are skipped
    - unusable values (not ``http...`` or ``/...``) are skipped
    - otherwise the URL becomes the primary image at position 0 and the
      legacy field is cleared

    A failure on one owner is recorded in the report and the run goes on.
    """

    owners: OwnerRepository
    images: OwnerImageRepository
    bus: RefreshBus | None = None

    def execute(self) -> MigrationReport:
        kind = self.owners.kind
        report = MigrationReport(owner_kind=kind.name)
        logger.info("Starting %s image migration", kind.label)

        candidates = self.owners.list_with_legacy_image()
        report.total = len(candidates)
        for owner in candidates:
            try:
                if self.images.list_by_owner(owner.id):
                    logger.info("Skipping %s %s: already has images", kind.label, owner.id)
                    report.skipped += 1
                    continue
                if not is_usable_url(owner.image_url, allow_relative=True):
                    logger.info("Skipping %s %s: unusable legacy image %r", kind.label, owner.id, owner.image_url)
                    report.skipped += 1
                    continue
                self.images.add(
                    owner_id=owner.id,
                    image_url=owner.image_url,
                    user_id=owner.user_id,
                    is_primary=True,
                    display_order=0,
                )
                self.owners.clear_legacy_image(owner.id)
            except (RuntimeError, ValueError, PermissionError) as exc:
                logger.error("Failed to migrate %s %s: %s", kind.label, owner.id, exc)
                report.errors.append(f"{kind.label} {owner.id}: {exc}")
                continue
            report.migrated += 1
            if self.bus is not None:
                self.bus.publish(kind.name, owner.id)

        logger.info(
            "%s migration completed: %d migrated, %d skipped, %d errors",
            kind.label.capitalize(),
            report.migrated,
            report.skipped,
            len(report.errors),
        )
        return report
