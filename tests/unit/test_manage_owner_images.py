import pytest

from battleplan.application.use_cases.manage_owner_images import (
    AddOwnerImageUseCase,
    DeleteOwnerImageUseCase,
    ReorderOwnerImagesUseCase,
    SetPrimaryImageUseCase,
    UpdateOwnerImageUseCase,
)
from battleplan.application.use_cases.resolve_display import ResolveDisplayImageUseCase
from battleplan.domain.entities.owner import BATTLE, BOX
from battleplan.domain.services.fallback_resolver import ImageTier
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.database.memory_store import MemoryStore
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository


@pytest.fixture()
def store() -> MemoryStore:
    store = MemoryStore()
    store.insert("battles", {"id": "b1", "user_id": "u1"})
    store.insert("battles", {"id": "b2", "user_id": "u2"})
    store.insert("battles", {"id": "b3", "user_id": None})
    return store


@pytest.fixture()
def owners(store) -> OwnerRepository:
    return OwnerRepository(None, BATTLE, store=store)


@pytest.fixture()
def bus() -> RefreshBus:
    return RefreshBus()


def deps(owners, bus):
    return {"owners": owners, "images": owners.images, "bus": bus}


def test_add_primary_keeps_single_primary(owners, bus):
    add = AddOwnerImageUseCase(**deps(owners, bus))
    first = add.execute("u1", "b1", "https://x/a.jpg", is_primary=True)
    second = add.execute("u1", "b1", "https://x/b.jpg", is_primary=True)

    images = owners.images.list_by_owner("b1")
    assert [i.is_primary for i in images] == [False, True]
    assert second.is_primary
    assert first.display_order == 0 and second.display_order == 1


def test_access_rules(owners, bus):
    add = AddOwnerImageUseCase(**deps(owners, bus))
    with pytest.raises(LookupError):
        add.execute("u1", "b2", "https://x/a.jpg")
    with pytest.raises(LookupError):
        add.execute("u1", "missing", "https://x/a.jpg")
    with pytest.raises(PermissionError):
        add.execute(None, "b1", "https://x/a.jpg")
    # owners without a recorded user are open
    assert add.execute("u1", "b3", "https://x/a.jpg").owner_id == "b3"


def test_image_must_belong_to_owner(owners, bus):
    add = AddOwnerImageUseCase(**deps(owners, bus))
    image = add.execute("u1", "b1", "https://x/a.jpg")
    with pytest.raises(LookupError):
        DeleteOwnerImageUseCase(**deps(owners, bus)).execute("u1", "b3", image.id)
    with pytest.raises(LookupError):
        SetPrimaryImageUseCase(**deps(owners, bus)).execute("u1", "b1", "missing")


def test_update_routes_primary_flag_through_set_primary(owners, bus):
    add = AddOwnerImageUseCase(**deps(owners, bus))
    a = add.execute("u1", "b1", "https://x/a.jpg", is_primary=True)
    b = add.execute("u1", "b1", "https://x/b.jpg")
    update = UpdateOwnerImageUseCase(**deps(owners, bus))

    result = update.execute("u1", "b1", b.id, {"is_primary": True, "display_order": 7})
    assert result.is_primary and result.display_order == 7
    assert not owners.images.get(a.id).is_primary

    result = update.execute("u1", "b1", b.id, {"is_primary": False})
    assert not result.is_primary

    with pytest.raises(ValueError):
        update.execute("u1", "b1", b.id, {"image_url": " "})


def test_mutations_publish_refresh(owners, bus):
    refreshed = []
    bus.subscribe("battles", "b1", lambda: refreshed.append(1))
    add = AddOwnerImageUseCase(**deps(owners, bus))
    a = add.execute("u1", "b1", "https://x/a.jpg")
    b = add.execute("u1", "b1", "https://x/b.jpg")
    SetPrimaryImageUseCase(**deps(owners, bus)).execute("u1", "b1", b.id)
    ReorderOwnerImagesUseCase(**deps(owners, bus)).execute("u1", "b1", [b.id, a.id])
    assert DeleteOwnerImageUseCase(**deps(owners, bus)).execute("u1", "b1", a.id)
    assert len(refreshed) == 5


def test_reorder_returns_updated_count(owners, bus):
    add = AddOwnerImageUseCase(**deps(owners, bus))
    a = add.execute("u1", "b1", "https://x/a.jpg")
    b = add.execute("u1", "b1", "https://x/b.jpg")
    foreign = add.execute("u1", "b3", "https://x/c.jpg")

    updated = ReorderOwnerImagesUseCase(**deps(owners, bus)).execute("u1", "b1", [b.id, a.id, foreign.id])
    assert updated == 2
    assert [i.id for i in owners.images.list_by_owner("b1")] == [b.id, a.id]


class TestResolveDisplayImageUseCase:
    def test_missing_owner_is_lookup_error(self, owners):
        with pytest.raises(LookupError):
            ResolveDisplayImageUseCase(owners).execute("missing")

    def test_backend_failure_resolves_placeholder(self, owners, monkeypatch):
        def broken(owner_id):
            raise RuntimeError("DB get battles failed")

        monkeypatch.setattr(owners, "get_with_images", broken)
        assert ResolveDisplayImageUseCase(owners).execute("b1").tier is ImageTier.PLACEHOLDER

    def test_box_uses_model_images(self):
        store = MemoryStore()
        store.insert("games", {"id": "g1", "image": "https://x/game.jpg"})
        store.insert("boxes", {"id": "x1", "user_id": "u1", "game_id": "g1", "show_carousel": False})
        store.insert("models", {"id": "m1", "image_url": "https://x/m1.jpg"})
        store.insert("model_boxes", {"box_id": "x1", "model_id": "m1"})
        boxes = OwnerRepository(None, BOX, store=store)

        res = ResolveDisplayImageUseCase(boxes).execute("x1")
        assert res.tier is ImageTier.CHILD_IMAGES
        assert res.urls == ("https://x/m1.jpg",)

        store.table("model_boxes").clear()
        assert ResolveDisplayImageUseCase(boxes).execute("x1").tier is ImageTier.GAME_IMAGE

    def test_game_failure_still_shows_own_images(self, monkeypatch):
        store = MemoryStore()
        store.insert("games", {"id": "g1", "image": "https://x/game.jpg"})
        store.insert("battles", {"id": "b1", "user_id": "u1", "game_uid": "g1"})
        battles = OwnerRepository(None, BATTLE, store=store)
        battles.images.add("b1", "https://x/own.jpg", user_id="u1")

        def broken(game_id):
            raise RuntimeError("DB get games failed")

        monkeypatch.setattr(battles, "_load_game", broken)
        res = ResolveDisplayImageUseCase(battles).execute("b1")
        assert res.tier is ImageTier.OWN_IMAGES
        assert res.urls == ("https://x/own.jpg",)
