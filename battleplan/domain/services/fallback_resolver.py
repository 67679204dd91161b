"""Image fallback cascade for battles and collections.

Every function here is pure and total: missing or malformed input falls
through to the next tier and the placeholder always matches.

Tiers, first match wins:

1. the owner's own image records (primary first, then ``display_order``)
2. the owner's legacy ``image_url`` field (``http...`` or ``/...``)
3. child model images (collections only)
4. the parent game's ``image`` (``http...`` only)
5. the parent game's ``icon`` (``http...`` only)
6. the placeholder asset
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from battleplan.domain.entities.owner import OwnerWithImages
from battleplan.domain.entities.owner_image import OwnerImageEntity

PLACEHOLDER_IMAGE = "/bp-unknown.svg"

_PLACEHOLDER_STRINGS = frozenset({"undefined", "null"})


class ImageTier(str, Enum):
    OWN_IMAGES = "own_images"
    LEGACY = "legacy"
    CHILD_IMAGES = "child_images"
    GAME_IMAGE = "game_image"
    GAME_ICON = "game_icon"
    PLACEHOLDER = "placeholder"


# Renderers dim anything resolved from these tiers
FALLBACK_TIERS = frozenset({ImageTier.GAME_IMAGE, ImageTier.GAME_ICON, ImageTier.PLACEHOLDER})


@dataclass(frozen=True)
class ResolvedImage:
    src: str
    is_primary: bool
    is_game_fallback: bool
    tier: ImageTier


@dataclass(frozen=True)
class ResolvedCandidates:
    urls: tuple[str, ...]
    tier: ImageTier

    @property
    def is_fallback(self) -> bool:
        return self.tier in FALLBACK_TIERS

    @property
    def is_carousel(self) -> bool:
        return len(self.urls) > 1

    @property
    def first(self) -> str:
        return self.urls[0]


def placeholder_image() -> str:
    return os.getenv("PLACEHOLDER_IMAGE_URL", PLACEHOLDER_IMAGE)


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip()) and value not in _PLACEHOLDER_STRINGS


def is_usable_url(value: Any, *, allow_relative: bool = False) -> bool:
    """Check a stored URL field before using it as an image source.

    Rejects non-strings, blank strings and the literal ``"undefined"`` /
    ``"null"`` values older clients wrote. Absolute ``http`` URLs are always
    accepted, root-relative paths only when ``allow_relative`` is set.
    """
    if not _has_text(value):
        return False
    if value.startswith("http"):
        return True
    return allow_relative and value.startswith("/")


def sort_owner_images(images: Iterable[OwnerImageEntity]) -> list[OwnerImageEntity]:
    """Primary-flagged records first, then ascending ``display_order``.

    ``sorted`` is stable, so records with equal keys keep their fetch order.
    """
    return sorted(images, key=lambda img: (not img.is_primary, img.display_order))


def own_image_urls(images: Iterable[OwnerImageEntity]) -> list[str]:
    return [img.image_url for img in sort_owner_images(images) if _has_text(img.image_url)]


def pick_child_image(legacy_url: Any, child_images: Iterable[dict[str, Any]] | None) -> str | None:
    """Choose the image representing one child model.

    The model's primary ``model_images`` record wins, then its legacy
    ``image_url`` if it is usable.
    """
    for img in child_images or ():
        if img.get("is_primary") and _has_text(img.get("image_url")):
            return img["image_url"]
    if is_usable_url(legacy_url, allow_relative=True):
        return legacy_url
    return None


def resolve_candidates(
    images: Iterable[OwnerImageEntity] = (),
    *,
    legacy_url: Any = None,
    game_image: Any = None,
    game_icon: Any = None,
    child_images: Sequence[str] = (),
    use_carousel: bool = False,
) -> ResolvedCandidates:
    """Compute the ordered list of image URLs to display for one owner.

    With ``use_carousel`` set and own images present, child images not
    already in the list are appended to build a richer carousel. Without it,
    child images are only used when the owner has nothing of its own.
    """
    urls = own_image_urls(images)
    if urls:
        if use_carousel:
            for child_url in child_images:
                if _has_text(child_url) and child_url not in urls:
                    urls.append(child_url)
        return ResolvedCandidates(tuple(urls), ImageTier.OWN_IMAGES)

    if is_usable_url(legacy_url, allow_relative=True):
        return ResolvedCandidates((legacy_url,), ImageTier.LEGACY)

    children = [url for url in child_images if _has_text(url)]
    if children:
        return ResolvedCandidates(tuple(children), ImageTier.CHILD_IMAGES)

    if is_usable_url(game_image):
        return ResolvedCandidates((game_image,), ImageTier.GAME_IMAGE)
    if is_usable_url(game_icon):
        return ResolvedCandidates((game_icon,), ImageTier.GAME_ICON)

    return ResolvedCandidates((placeholder_image(),), ImageTier.PLACEHOLDER)


def resolve_owner(
    owner: OwnerWithImages | None,
    *,
    child_images: Sequence[str] = (),
    force_carousel: bool | None = None,
    game_image: Any = None,
    game_icon: Any = None,
) -> ResolvedCandidates:
    """Resolve candidates for a fetched owner.

    ``game_image``/``game_icon`` are used when the owner carries no joined
    game, e.g. before the first fetch completes.
    """
    if owner is None:
        return resolve_candidates(game_image=game_image, game_icon=game_icon, child_images=child_images)
    use_carousel = owner.show_carousel if force_carousel is None else force_carousel
    if owner.game is not None:
        game_image, game_icon = owner.game.image, owner.game.icon
    return resolve_candidates(
        owner.images,
        legacy_url=owner.image_url,
        game_image=game_image,
        game_icon=game_icon,
        child_images=child_images if owner.kind.has_children else (),
        use_carousel=use_carousel,
    )


def resolve_image_src(owner: OwnerWithImages) -> ResolvedImage:
    """Best single image for an owner, e.g. for thumbnails and share cards."""
    ordered = [img for img in sort_owner_images(owner.images) if _has_text(img.image_url)]
    if ordered:
        return ResolvedImage(ordered[0].image_url, ordered[0].is_primary, False, ImageTier.OWN_IMAGES)

    resolved = resolve_owner(owner)
    return ResolvedImage(
        src=resolved.first,
        is_primary=resolved.tier is ImageTier.LEGACY,
        is_game_fallback=resolved.is_fallback,
        tier=resolved.tier,
    )
