import io

import pytest
from PIL import Image

from battleplan.infrastructure.database.memory_store import get_memory_store


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    img = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def seeded(test_user_id):
    store = get_memory_store()
    store.insert("games", {"id": "g1", "name": "Skirmish", "image": "https://x/game.jpg", "icon": None})
    store.insert("battles", {"id": "b1", "user_id": test_user_id, "game_uid": "g1", "image_url": None})
    store.insert("battles", {"id": "b2", "user_id": "someone-else", "game_uid": "g1"})
    store.insert(
        "boxes",
        {"id": "x1", "user_id": test_user_id, "game_id": "g1", "image_url": "https://x/box.jpg", "show_carousel": False},
    )
    return store


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "battleplan-images"
    assert client.get("/health").json() == {"status": "healthy"}


def test_display_falls_back_to_game(client, seeded):
    r = client.get("/battles/b1/display")
    assert r.status_code == 200
    data = r.json()
    assert data["image_src"] == "https://x/game.jpg"
    assert data["is_fallback"] is True
    assert data["tier"] == "game_image"


def test_display_unknown_owner_and_kind(client, seeded):
    assert client.get("/battles/missing/display").status_code == 404
    assert client.get("/dragons/b1/display").status_code == 422


def test_add_list_and_display(client, auth_header, seeded):
    r = client.post("/battles/b1/images", headers=auth_header, json={"image_url": "https://x/a.jpg"})
    assert r.status_code == 201, r.text
    r = client.post(
        "/battles/b1/images", headers=auth_header, json={"image_url": "https://x/b.jpg", "is_primary": True}
    )
    assert r.status_code == 201, r.text
    primary_id = r.json()["id"]

    listed = client.get("/battles/b1/images").json()
    assert listed["total"] == 2
    assert [i["is_primary"] for i in listed["images"]] == [False, True]

    assert client.get("/battles/b1/images/primary").json()["id"] == primary_id

    display = client.get("/battles/b1/display").json()
    assert display["all_images"] == ["https://x/b.jpg", "https://x/a.jpg"]
    assert display["is_carousel"] is True
    assert display["is_fallback"] is False


def test_mutations_require_auth(client, seeded):
    r = client.post("/battles/b1/images", json={"image_url": "https://x/a.jpg"})
    assert r.status_code == 401


def test_foreign_owner_is_hidden(client, auth_header, seeded):
    r = client.post("/battles/b2/images", headers=auth_header, json={"image_url": "https://x/a.jpg"})
    assert r.status_code == 404


def test_invalid_body_rejected(client, auth_header, seeded):
    r = client.post("/battles/b1/images", headers=auth_header, json={"image_url": ""})
    assert r.status_code == 422
    r = client.post("/battles/b1/images", headers=auth_header, json={"image_url": "https://x/a.jpg", "display_order": -1})
    assert r.status_code == 422


def test_reorder_update_set_primary_delete(client, auth_header, seeded):
    ids = []
    for name in ("a", "b", "c"):
        r = client.post("/battles/b1/images", headers=auth_header, json={"image_url": f"https://x/{name}.jpg"})
        ids.append(r.json()["id"])

    r = client.put("/battles/b1/images/order", headers=auth_header, json={"image_ids": list(reversed(ids))})
    assert r.status_code == 200
    assert r.json() == {"updated": 3}
    listed = client.get("/battles/b1/images").json()["images"]
    assert [i["id"] for i in listed] == list(reversed(ids))

    r = client.post(f"/battles/b1/images/{ids[0]}/primary", headers=auth_header)
    assert r.status_code == 200 and r.json()["is_primary"] is True

    r = client.patch(f"/battles/b1/images/{ids[1]}", headers=auth_header, json={"is_primary": True})
    assert r.status_code == 200
    flags = {i["id"]: i["is_primary"] for i in client.get("/battles/b1/images").json()["images"]}
    assert flags == {ids[0]: False, ids[1]: True, ids[2]: False}

    r = client.delete(f"/battles/b1/images/{ids[2]}", headers=auth_header)
    assert r.status_code == 200 and r.json() == {"ok": True}
    assert client.delete(f"/battles/b1/images/{ids[2]}", headers=auth_header).status_code == 404


def test_upload_image(client, auth_header, seeded, tmp_path, monkeypatch):
    monkeypatch.setenv("SUPABASE_STORAGE_LOCAL_DIR", str(tmp_path))
    files = {"file": ("sample.png", make_png_bytes(), "image/png")}
    r = client.post("/boxes/x1/images/upload", headers=auth_header, files=files)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["is_primary"] is True
    assert data["image_url"].startswith("/local-storage/")

    bad = {"file": ("notes.txt", b"hello", "text/plain")}
    assert client.post("/boxes/x1/images/upload", headers=auth_header, files=bad).status_code == 400


def test_box_carousel_preference(client, auth_header, seeded):
    seeded.insert("models", {"id": "m1", "image_url": "https://x/m1.jpg"})
    seeded.insert("model_boxes", {"box_id": "x1", "model_id": "m1"})
    client.post("/boxes/x1/images", headers=auth_header, json={"image_url": "https://x/own.jpg"})

    assert client.get("/boxes/x1/display").json()["all_images"] == ["https://x/own.jpg"]

    r = client.patch("/boxes/x1/carousel", headers=auth_header, json={"show_carousel": True})
    assert r.status_code == 200
    assert r.json() == {"owner_id": "x1", "show_carousel": True}
    assert client.get("/boxes/x1/display").json()["all_images"] == ["https://x/own.jpg", "https://x/m1.jpg"]
    assert client.get("/boxes/x1/display?force_carousel=false").json()["is_carousel"] is False


def test_migrate_legacy_images(client, auth_header, seeded, test_user_id, monkeypatch):
    monkeypatch.setenv("MIGRATION_ADMIN_USER_IDS", f"someone-else, {test_user_id}")
    r = client.post("/migrations/boxes/legacy-images", headers=auth_header)
    assert r.status_code == 200
    report = r.json()
    assert report["success"] is True
    assert report["migrated"] == 1

    images = client.get("/boxes/x1/images").json()["images"]
    assert [(i["image_url"], i["is_primary"]) for i in images] == [("https://x/box.jpg", True)]
    assert client.post("/migrations/boxes/legacy-images", headers=auth_header).json()["migrated"] == 0


def test_migration_is_operator_only(client, auth_header, seeded, monkeypatch):
    monkeypatch.delenv("MIGRATION_ADMIN_USER_IDS", raising=False)
    r = client.post("/migrations/boxes/legacy-images", headers=auth_header)
    assert r.status_code == 403
    assert r.json() == {"detail": "Operator access required"}
    assert client.post("/migrations/boxes/legacy-images").status_code == 401

    monkeypatch.setenv("MIGRATION_ADMIN_USER_IDS", "someone-else")
    assert client.post("/migrations/boxes/legacy-images", headers=auth_header).status_code == 403
    assert client.get("/boxes/x1/images").json()["total"] == 0


def test_error_responses_are_documented(client):
    schema = client.get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    migrate = schema["paths"]["/migrations/{owner_kind}/legacy-images"]["post"]["responses"]
    assert migrate["403"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
