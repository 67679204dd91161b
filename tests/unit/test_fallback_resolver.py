import itertools

import pytest

from battleplan.domain.entities.owner import BATTLE, BOX, GameEntity, OwnerWithImages
from battleplan.domain.entities.owner_image import OwnerImageEntity
from battleplan.domain.services.fallback_resolver import (
    PLACEHOLDER_IMAGE,
    ImageTier,
    is_usable_url,
    pick_child_image,
    resolve_candidates,
    resolve_image_src,
    resolve_owner,
    sort_owner_images,
)


def img(image_id, url, order=0, primary=False, owner_id="b1"):
    return OwnerImageEntity(id=image_id, owner_id=owner_id, image_url=url, display_order=order, is_primary=primary)


OWN = [img("i1", "https://cdn/a.jpg")]
LEGACY = "https://cdn/legacy.jpg"
CHILDREN = ["https://cdn/model.jpg"]
GAME_IMAGE = "https://cdn/game.jpg"
GAME_ICON = "https://cdn/icon.png"


@pytest.mark.parametrize(
    "own, legacy, children, game_image, game_icon",
    list(itertools.product([OWN, []], [LEGACY, None], [CHILDREN, []], [GAME_IMAGE, None], [GAME_ICON, None])),
)
def test_first_present_tier_wins(own, legacy, children, game_image, game_icon):
    res = resolve_candidates(
        own, legacy_url=legacy, child_images=children, game_image=game_image, game_icon=game_icon
    )
    if own:
        expected = (ImageTier.OWN_IMAGES, "https://cdn/a.jpg")
    elif legacy:
        expected = (ImageTier.LEGACY, LEGACY)
    elif children:
        expected = (ImageTier.CHILD_IMAGES, CHILDREN[0])
    elif game_image:
        expected = (ImageTier.GAME_IMAGE, GAME_IMAGE)
    elif game_icon:
        expected = (ImageTier.GAME_ICON, GAME_ICON)
    else:
        expected = (ImageTier.PLACEHOLDER, PLACEHOLDER_IMAGE)
    assert (res.tier, res.first) == expected
    assert res.urls


def test_sort_primary_first_then_display_order():
    images = [img("a", "u3", order=3), img("b", "u1", order=1), img("c", "u0", order=0)]
    assert [i.id for i in sort_owner_images(images)] == ["c", "b", "a"]

    images.append(img("d", "u5", order=5, primary=True))
    assert [i.id for i in sort_owner_images(images)] == ["d", "c", "b", "a"]


def test_sort_is_stable_for_equal_keys():
    images = [img("a", "u1", order=1), img("b", "u2", order=1)]
    assert [i.id for i in sort_owner_images(images)] == ["a", "b"]


def test_own_images_become_carousel():
    res = resolve_candidates([img("a", "https://x/1.jpg", 1), img("b", "https://x/0.jpg", 0)])
    assert res.tier is ImageTier.OWN_IMAGES
    assert res.urls == ("https://x/0.jpg", "https://x/1.jpg")
    assert res.is_carousel
    assert not res.is_fallback


def test_game_image_must_be_absolute():
    res = resolve_candidates(game_image="/relative/game.jpg", game_icon="https://cdn/icon.png")
    assert res.tier is ImageTier.GAME_ICON
    assert res.is_fallback


def test_legacy_accepts_root_relative_path():
    res = resolve_candidates(legacy_url="/uploads/x.jpg", game_image=GAME_IMAGE)
    assert res.tier is ImageTier.LEGACY
    assert res.urls == ("/uploads/x.jpg",)
    assert not res.is_fallback


@pytest.mark.parametrize("value", [None, "", "   ", "undefined", "null", "ftp://x", "image.jpg", 42])
def test_unusable_legacy_values_fall_through(value):
    res = resolve_candidates(legacy_url=value, game_image=GAME_IMAGE)
    assert res.tier is ImageTier.GAME_IMAGE


def test_is_usable_url():
    assert is_usable_url("https://cdn/x.jpg")
    assert is_usable_url("http://cdn/x.jpg")
    assert not is_usable_url("/x.jpg")
    assert is_usable_url("/x.jpg", allow_relative=True)
    assert not is_usable_url("undefined", allow_relative=True)


def test_placeholder_is_fallback_and_static(monkeypatch):
    monkeypatch.delenv("PLACEHOLDER_IMAGE_URL", raising=False)
    res = resolve_candidates()
    assert res.urls == (PLACEHOLDER_IMAGE,)
    assert res.is_fallback
    assert not res.is_carousel


def test_placeholder_can_be_configured(monkeypatch):
    monkeypatch.setenv("PLACEHOLDER_IMAGE_URL", "/static/none.svg")
    assert resolve_candidates().first == "/static/none.svg"


def test_carousel_appends_unique_child_images():
    own = [img("a", "https://x/own.jpg")]
    children = ["https://x/own.jpg", "https://x/m1.jpg", "https://x/m1.jpg", "https://x/m2.jpg"]
    res = resolve_candidates(own, child_images=children, use_carousel=True)
    assert res.urls == ("https://x/own.jpg", "https://x/m1.jpg", "https://x/m2.jpg")
    assert res.tier is ImageTier.OWN_IMAGES


def test_children_ignored_when_owner_has_images_and_no_carousel():
    own = [img("a", "https://x/own.jpg")]
    res = resolve_candidates(own, child_images=["https://x/m1.jpg"], use_carousel=False)
    assert res.urls == ("https://x/own.jpg",)


def test_pick_child_image_prefers_primary_record():
    records = [
        {"image_url": "https://x/secondary.jpg", "is_primary": False},
        {"image_url": "https://x/primary.jpg", "is_primary": True},
    ]
    assert pick_child_image("https://x/legacy.jpg", records) == "https://x/primary.jpg"
    assert pick_child_image("https://x/legacy.jpg", records[:1]) == "https://x/legacy.jpg"
    assert pick_child_image("undefined", []) is None
    assert pick_child_image(None, None) is None


def test_resolve_owner_uses_joined_game():
    owner = OwnerWithImages(id="b1", kind=BATTLE, game=GameEntity(id="g1", image=None, icon=GAME_ICON))
    res = resolve_owner(owner, game_image=GAME_IMAGE)
    assert res.tier is ImageTier.GAME_ICON


def test_resolve_owner_uses_props_without_joined_game():
    owner = OwnerWithImages(id="b1", kind=BATTLE)
    assert resolve_owner(owner, game_image=GAME_IMAGE).first == GAME_IMAGE


def test_resolve_owner_battles_never_use_children():
    owner = OwnerWithImages(id="b1", kind=BATTLE)
    res = resolve_owner(owner, child_images=CHILDREN, game_image=GAME_IMAGE)
    assert res.tier is ImageTier.GAME_IMAGE


def test_resolve_owner_box_preference_and_override():
    own = (img("a", "https://x/own.jpg", owner_id="x1"),)
    box = OwnerWithImages(id="x1", kind=BOX, images=own, show_carousel=True)
    assert resolve_owner(box, child_images=CHILDREN).urls == ("https://x/own.jpg", CHILDREN[0])
    assert resolve_owner(box, child_images=CHILDREN, force_carousel=False).urls == ("https://x/own.jpg",)

    off = OwnerWithImages(id="x1", kind=BOX, images=own, show_carousel=False)
    assert resolve_owner(off, child_images=CHILDREN, force_carousel=True).is_carousel


def test_resolve_owner_none_before_fetch():
    assert resolve_owner(None, game_image=GAME_IMAGE).first == GAME_IMAGE
    assert resolve_owner(None).tier is ImageTier.PLACEHOLDER


def test_resolve_image_src_own_image():
    owner = OwnerWithImages(
        id="b1", kind=BATTLE, images=(img("a", "https://x/a.jpg", 0), img("b", "https://x/b.jpg", 1, primary=True))
    )
    res = resolve_image_src(owner)
    assert res.src == "https://x/b.jpg"
    assert res.is_primary
    assert not res.is_game_fallback


def test_resolve_image_src_legacy_counts_as_primary():
    owner = OwnerWithImages(id="b1", kind=BATTLE, image_url=LEGACY)
    res = resolve_image_src(owner)
    assert res.src == LEGACY
    assert res.is_primary
    assert not res.is_game_fallback


def test_resolve_image_src_game_fallback():
    owner = OwnerWithImages(id="b1", kind=BATTLE, game=GameEntity(id="g1", image=GAME_IMAGE))
    res = resolve_image_src(owner)
    assert res.src == GAME_IMAGE
    assert not res.is_primary
    assert res.is_game_fallback
