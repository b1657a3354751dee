from urllib.parse import quote

import pytest


def _post_coords(client, coords):
    return client.post("/api/coordinates", json={"coordinates": coords})


# ── Coordinates ───────────────────────────────────────────────────────────────

def test_post_coordinates_defaults_photo_capture(client):
    r = _post_coords(client, [1, 2, 3])
    assert r.status_code == 200
    assert r.json() == {"status": "success", "message": "Coordinates received"}

    stored = client.get("/api/coordinates").json()
    assert len(stored) == 1
    assert stored[0]["distance"] == 1
    assert stored[0]["x"] == 2
    assert stored[0]["z"] == 3
    assert stored[0]["photoCapture"] == 0


def test_post_coordinates_with_photo_capture(client):
    assert _post_coords(client, [1.5, -2, 0, 1]).status_code == 200
    assert client.get("/api/coordinates").json()[0]["photoCapture"] == 1


@pytest.mark.parametrize(
    "coords, message",
    [
        ([1, 2], "Invalid coordinates format"),
        ("1,2,3", "Invalid coordinates format"),
        (None, "Invalid coordinates format"),
        (["a", 1, 2], "must be numbers"),
        ([1, True, 2], "must be numbers"),
        ([10**400, 1, 2], "must be numbers"),
        ([1, 2, 3, 2], "Photo capture"),
        ([1, 2, 3, None], "Photo capture"),
    ],
)
def test_post_coordinates_rejects_bad_input(client, coords, message):
    r = _post_coords(client, coords)
    assert r.status_code == 400
    assert message in r.json()["detail"]
    assert client.get("/api/coordinates").json() == []


def test_post_rejects_non_object_body(client):
    r = client.post("/api/coordinates", content=b"[1, 2, 3]",
                    headers={"content-type": "application/json"})
    assert r.status_code == 400
    r = client.post("/api/image", content=b"not json",
                    headers={"content-type": "application/json"})
    assert r.status_code == 400


def test_coordinate_history_capped_at_100(client):
    for i in range(101):
        assert _post_coords(client, [i, 0, 0]).status_code == 200
    stored = client.get("/api/coordinates").json()
    assert len(stored) == 100
    assert stored[0]["distance"] == 1
    assert stored[-1]["distance"] == 100


def test_delete_coordinates(client):
    _post_coords(client, [1, 2, 3])
    r = client.delete("/api/coordinates")
    assert r.status_code == 200
    assert client.get("/api/coordinates").json() == []


# ── Images ────────────────────────────────────────────────────────────────────

def test_images_newest_first(client):
    assert client.post("/api/image", json={"imageUrl": "A"}).status_code == 200
    assert client.post("/api/image", json={"imageUrl": "B", "metadata": {"cam": 2}}).status_code == 200

    images = client.get("/api/images").json()
    assert [i["url"] for i in images] == ["B", "A"]
    assert images[0]["metadata"] == {"cam": 2}
    assert images[1]["metadata"] == {}


def test_post_image_requires_url(client):
    r = client.post("/api/image", json={"metadata": {}})
    assert r.status_code == 400
    assert r.json()["detail"] == "No image URL provided"
    r = client.post("/api/image", json={"imageUrl": ""})
    assert r.status_code == 400
    r = client.post("/api/image", json={"imageUrl": 42})
    assert r.json()["detail"] == "No image URL provided"


def test_post_image_rejects_non_object_metadata(client):
    r = client.post("/api/image", json={"imageUrl": "A", "metadata": [1]})
    assert r.status_code == 400
    assert r.json()["detail"] == "Image metadata must be an object"
    assert client.get("/api/images").json() == []


def test_post_image_null_metadata_defaults_to_empty(client):
    assert client.post("/api/image", json={"imageUrl": "A", "metadata": None}).status_code == 200
    assert client.get("/api/images").json()[0]["metadata"] == {}


def test_delete_images(client):
    client.post("/api/image", json={"imageUrl": "A"})
    assert client.delete("/api/images").status_code == 200
    assert client.get("/api/images").json() == []


# ── Banner data ───────────────────────────────────────────────────────────────

BANNER = {"imageUrl": "http://cdn.example/a.jpg", "brand": "Acme", "position": "top", "type": "static"}


def test_banner_attaches_to_matching_image(client):
    client.post("/api/image", json={"imageUrl": BANNER["imageUrl"]})
    client.post("/api/image", json={"imageUrl": "http://cdn.example/b.jpg"})

    r = client.post("/api/banner_data", json=BANNER)
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Banner data received"
    assert body["data"]["brand"] == "Acme"
    assert isinstance(body["data"]["timestamp"], int)

    images = {i["url"]: i for i in client.get("/api/images").json()}
    assert images[BANNER["imageUrl"]]["metadata"]["bannerData"] == body["data"]
    assert "bannerData" not in images["http://cdn.example/b.jpg"]["metadata"]


def test_banner_without_matching_image_is_stored(client):
    client.post("/api/image", json={"imageUrl": "other"})
    before = client.get("/api/images").json()

    assert client.post("/api/banner_data", json=BANNER).status_code == 201

    assert client.get("/api/images").json() == before
    assert len(client.get("/api/banner_data").json()) == 1


@pytest.mark.parametrize("missing", ["imageUrl", "brand", "position", "type"])
def test_banner_missing_field(client, missing):
    payload = {k: v for k, v in BANNER.items() if k != missing}
    r = client.post("/api/banner_data", json=payload)
    assert r.status_code == 400
    assert r.json()["detail"] == "Missing required fields"


def test_banner_fields_must_be_strings(client):
    r = client.post("/api/banner_data", json={**BANNER, "brand": 7})
    assert r.status_code == 400
    assert r.json()["detail"] == "Missing required fields"
    assert client.get("/api/banner_data").json() == []


def test_banner_internal_error_returns_500(client, store, monkeypatch):
    def boom(rec):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(store, "attach_banner", boom)
    r = client.post("/api/banner_data", json=BANNER)
    assert r.status_code == 500
    assert r.json()["detail"] == "Internal server error"

    # server keeps serving
    assert client.get("/api/banner_data").status_code == 200


def test_get_banner_by_image_url(client):
    client.post("/api/banner_data", json=BANNER)

    r = client.get("/api/banner_data/" + quote(BANNER["imageUrl"], safe=""))
    assert r.status_code == 200
    assert r.json()["brand"] == "Acme"

    r = client.get("/api/banner_data/plain-id")
    assert r.status_code == 404
    assert r.json()["detail"] == "No banner data found for this image"


# ── Everything ────────────────────────────────────────────────────────────────

def test_delete_all(client):
    _post_coords(client, [1, 2, 3])
    client.post("/api/image", json={"imageUrl": "A"})
    client.post("/api/banner_data", json={**BANNER, "imageUrl": "A"})

    r = client.delete("/api/all")
    assert r.status_code == 200
    assert r.json()["message"] == "All data cleared"

    assert client.get("/api/coordinates").json() == []
    assert client.get("/api/images").json() == []
    assert client.get("/api/banner_data").json() == []
