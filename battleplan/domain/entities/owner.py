from __future__ import annotations

from dataclasses import dataclass, field

from battleplan.domain.entities.owner_image import OwnerImageEntity


@dataclass(frozen=True)
class OwnerKind:
    """Describes where an image owner and its images live.

    Battles and collections ("boxes") share the same image handling; only the
    tables and a couple of capabilities differ.
    """

    name: str  # also the URL segment
    label: str
    owner_table: str
    image_table: str
    owner_column: str  # foreign key column in image_table
    game_column: str  # column on the owner row pointing at games.id
    has_carousel_preference: bool = False
    has_children: bool = False


BATTLE = OwnerKind(
    name="battles",
    label="battle",
    owner_table="battles",
    image_table="battle_images",
    owner_column="battle_id",
    game_column="game_uid",
)

BOX = OwnerKind(
    name="boxes",
    label="collection",
    owner_table="boxes",
    image_table="box_images",
    owner_column="box_id",
    game_column="game_id",
    has_carousel_preference=True,
    has_children=True,
)

OWNER_KINDS: dict[str, OwnerKind] = {kind.name: kind for kind in (BATTLE, BOX)}


def get_owner_kind(name: str) -> OwnerKind:
    try:
        return OWNER_KINDS[name]
    except KeyError:
        raise ValueError(f"Unknown owner kind: {name}") from None


@dataclass(frozen=True)
class GameEntity:
    id: str
    name: str | None = None
    image: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class OwnerWithImages:
    id: str
    kind: OwnerKind
    image_url: str | None = None  # legacy single-image field
    user_id: str | None = None
    game_id: str | None = None
    show_carousel: bool = False
    images: tuple[OwnerImageEntity, ...] = field(default_factory=tuple)
    game: GameEntity | None = None
