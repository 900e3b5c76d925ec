from fastapi.testclient import TestClient

from game_catalog import repositories
from game_catalog.main import app

client = TestClient(app)
JSON = {"Accept": "application/json"}


def _create(name, **extra):
    r = client.post("/platforms", json={"name": name, **extra}, headers=JSON)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_and_fetch_platform_as_json():
    created = _create("Nintendo 64", platform_logo_url="https://img.example/n64.png")
    assert created == {
        "name": "Nintendo 64",
        "slug": "nintendo-64",
        "platform_logo_url": "https://img.example/n64.png",
        "url": None,
    }
    r = client.get("/platforms/nintendo-64", headers=JSON)
    assert r.status_code == 200
    assert r.json()["name"] == "Nintendo 64"


def test_list_platforms_sorted_by_name():
    _create("Xbox")
    _create("Game Boy")
    _create("PlayStation")
    r = client.get("/platforms", headers=JSON)
    assert r.status_code == 200
    assert [p["slug"] for p in r.json()] == ["game-boy", "playstation", "xbox"]


def test_explicit_slug_is_normalised():
    created = _create("Super Nintendo", slug="SNES")
    assert created["slug"] == "snes"


def test_duplicate_slug_conflicts():
    _create("Nintendo 64")
    r = client.post("/platforms", json={"name": "Nintendo 64"}, headers=JSON)
    assert r.status_code == 409
    assert r.json() == {"error": ["platform already exists: nintendo-64"]}


def test_create_requires_name():
    r = client.post("/platforms", json={"platform_logo_url": "x"}, headers=JSON)
    assert r.status_code == 400
    r = client.post("/platforms", json={"name": "   "}, headers=JSON)
    assert r.status_code == 400
    assert any("name" in message for message in r.json()["error"])


def test_create_rejects_non_object_json():
    r = client.post("/platforms", json=["Nintendo 64"], headers=JSON)
    assert r.status_code == 400


def test_create_rejects_wrongly_typed_values():
    r = client.post("/platforms", json={"name": "Wii", "slug": 5}, headers=JSON)
    assert r.status_code == 400
    assert any("slug must be a string" in message for message in r.json()["error"])
    r = client.post("/platforms", json={"name": ["Wii"]}, headers=JSON)
    assert r.status_code == 400
    assert client.get("/platforms", headers=JSON).json() == []


def test_concurrent_create_of_same_slug_conflicts(monkeypatch):
    monkeypatch.setattr(repositories.PlatformRepository, "exists", lambda self, slug: False)
    _create("Wii")
    r = client.post("/platforms", json={"name": "Wii"}, headers=JSON)
    assert r.status_code == 409
    assert r.json() == {"error": ["platform already exists: wii"]}


def test_unknown_platform_is_404_json():
    r = client.get("/platforms/nope", headers=JSON)
    assert r.status_code == 404
    assert r.json() == {"error": "platform not found: nope"}


def test_put_updates_fields_and_keeps_slug():
    _create("Nintendo 64")
    r = client.put("/platforms/nintendo-64", json={"name": "N64", "slug": "n64"}, headers=JSON)
    assert r.status_code == 200
    assert r.json()["name"] == "N64"
    assert r.json()["slug"] == "nintendo-64"
    assert client.get("/platforms/nintendo-64", headers=JSON).json()["name"] == "N64"


def test_put_unknown_platform_is_404():
    r = client.put("/platforms/nope", json={"name": "x"})
    assert r.status_code == 404
    assert r.json()["error"] == "platform not found: nope"


def test_put_cannot_clear_name():
    _create("Nintendo 64")
    r = client.put("/platforms/nintendo-64", json={"name": None})
    assert r.status_code == 400


def test_delete_platform_json():
    _create("Nintendo 64")
    r = client.delete("/platforms/nintendo-64", headers=JSON)
    assert r.status_code == 204
    assert client.get("/platforms/nintendo-64", headers=JSON).status_code == 404
    assert client.delete("/platforms/nintendo-64", headers=JSON).status_code == 404


def test_html_form_create_redirects_to_show_page():
    r = client.post("/platforms", data={"name": "Sega Saturn", "slug": ""}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/platforms/sega-saturn"
    page = client.get("/platforms/sega-saturn")
    assert page.status_code == 200
    assert "text/html" in page.headers["content-type"]
    assert "Sega Saturn" in page.text


def test_html_form_errors_rerender_form():
    r = client.post("/platforms", data={"name": ""})
    assert r.status_code == 400
    assert "name must not be empty" in r.text
    assert "<form" in r.text


def test_html_form_update_redirects():
    _create("Dreamcast")
    r = client.post("/platforms/dreamcast", data={"name": "Sega Dreamcast", "url": ""}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/platforms/dreamcast"
    assert client.get("/platforms/dreamcast", headers=JSON).json()["name"] == "Sega Dreamcast"


def test_form_update_accepts_json_body():
    _create("Dreamcast")
    r = client.post("/platforms/dreamcast", json={"name": "Sega Dreamcast", "url": "https://sega.example"}, headers=JSON)
    assert r.status_code == 200
    assert r.json() == {
        "name": "Sega Dreamcast",
        "slug": "dreamcast",
        "platform_logo_url": None,
        "url": "https://sega.example",
    }
    r = client.post("/platforms/dreamcast", json={"name": 64}, headers=JSON)
    assert r.status_code == 400
    assert isinstance(r.json()["error"], list)
    assert client.get("/platforms/dreamcast", headers=JSON).json()["name"] == "Sega Dreamcast"


def test_html_form_update_unknown_is_404_page():
    r = client.post("/platforms/nope", data={"name": "x"})
    assert r.status_code == 404
    assert "Not found" in r.text


def test_new_and_edit_pages():
    _create("Game Cube")
    assert client.get("/platforms/new").status_code == 200
    edit = client.get("/platforms/game-cube/edit")
    assert edit.status_code == 200
    assert 'value="Game Cube"' in edit.text
    assert client.get("/platforms/nope/edit").status_code == 404


def test_html_delete_redirects_to_index():
    _create("Atari 2600")
    r = client.delete("/platforms/atari-2600", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/platforms"


def test_html_index_lists_platforms():
    _create("Neo Geo")
    r = client.get("/platforms")
    assert r.status_code == 200
    assert "Neo Geo" in r.text
