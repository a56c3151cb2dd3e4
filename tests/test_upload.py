import base64
import os

from conftest import register_and_login

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake image").decode()


def test_upload_character_image(client, settings):
    register_and_login(client)

    response = client.post("/api/upload", json={"file": PNG_DATA_URL, "type": "character"})
    assert response.status_code == 200

    url = response.json()["url"]
    assert url.startswith("/uploads/characters/character_")
    assert url.endswith(".png")
    with open(os.path.join(settings.upload_dir, url[len("/uploads/"):]), "rb") as f:
        assert f.read() == b"\x89PNG fake image"


def test_uploaded_file_is_served(client):
    register_and_login(client)
    url = client.post("/api/upload", json={"file": PNG_DATA_URL}).json()["url"]

    response = client.get(url)
    assert response.status_code == 200
    assert response.content == b"\x89PNG fake image"


def test_profile_upload_goes_to_avatars(client):
    register_and_login(client)
    response = client.post("/api/upload", json={"file": PNG_DATA_URL, "type": "profile"})
    assert response.json()["url"].startswith("/uploads/avatars/profile_")


def test_upload_type_cannot_escape_directory(client):
    register_and_login(client)
    response = client.post("/api/upload", json={"file": PNG_DATA_URL, "type": "../../etc"})
    assert response.json()["url"].startswith("/uploads/characters/character_")


def test_upload_rejects_bad_data(client):
    register_and_login(client)
    assert client.post("/api/upload", json={}).status_code == 400
    assert client.post("/api/upload", json={"file": "not a data url"}).status_code == 400


def test_upload_requires_auth(client):
    assert client.post("/api/upload", json={"file": PNG_DATA_URL}).status_code == 401


def test_upload_rejects_undecodable_payload(client, settings):
    """Garbage after the base64 prefix is refused instead of stored as an empty file"""
    register_and_login(client)

    response = client.post("/api/upload", json={"file": "data:image/png;base64,!!!!", "type": "character"})
    assert response.status_code == 400
    assert not os.path.exists(os.path.join(settings.upload_dir, "characters"))
