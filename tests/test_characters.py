import json

from conftest import TEST_CHARACTER, create_character, register_and_login

from kirakira.models.character import Character


def test_create_character(client):
    user_id = register_and_login(client)

    response = client.post("/api/characters", json=TEST_CHARACTER)
    assert response.status_code == 201

    character = response.json()["character"]
    assert character["name"] == "Luna"
    assert character["creatorId"] == user_id
    assert character["visibility"] == "PUBLIC"
    assert character["chatCount"] == 0
    # List fields come back as the stored JSON strings
    assert json.loads(character["exampleDialogs"]) == TEST_CHARACTER["exampleDialogs"]
    assert json.loads(character["greetings"]) == TEST_CHARACTER["greetings"]


def test_create_character_requires_auth(client):
    response = client.post("/api/characters", json=TEST_CHARACTER)
    assert response.status_code == 401


def test_create_character_missing_fields(client):
    register_and_login(client)
    response = client.post("/api/characters", json={"name": "Luna"})
    assert response.status_code == 400


def test_character_limit(client, db_session):
    """A sixth character is rejected without touching the database"""
    user_id = register_and_login(client)
    for i in range(5):
        create_character(client, name=f"Character {i}")

    response = client.post("/api/characters", json=dict(TEST_CHARACTER, name="One too many"))
    assert response.status_code == 400
    assert db_session.query(Character).filter(Character.creator_id == user_id).count() == 5


def test_visibility_defaults_to_private(client):
    register_and_login(client)
    payload = dict(TEST_CHARACTER)
    del payload["visibility"]

    response = client.post("/api/characters", json=payload)
    assert response.status_code == 201
    assert response.json()["character"]["visibility"] == "PRIVATE"


def test_public_and_my_lists(client):
    register_and_login(client)
    create_character(client, name="Public One")
    create_character(client, name="Private One", visibility="PRIVATE")

    public = client.get("/api/characters/public").json()["characters"]
    assert [c["name"] for c in public] == ["Public One"]

    mine = client.get("/api/characters/my").json()["characters"]
    assert {c["name"] for c in mine} == {"Public One", "Private One"}


def test_public_list_is_anonymous(client):
    register_and_login(client)
    create_character(client)
    client.cookies.clear()

    response = client.get("/api/characters/public")
    assert response.status_code == 200
    assert len(response.json()["characters"]) == 1


def test_get_character_detail(client):
    user_id = register_and_login(client)
    created = create_character(client)

    response = client.get(f"/api/characters/{created['id']}")
    assert response.status_code == 200
    character = response.json()["character"]
    assert character["creator"] == {"id": user_id, "name": "Tester"}
    assert character["secret"] == TEST_CHARACTER["secret"]


def test_secret_hidden_from_other_users(client):
    register_and_login(client)
    created = create_character(client)

    register_and_login(client, email="other@example.com", name="Other")
    character = client.get(f"/api/characters/{created['id']}").json()["character"]
    assert character["secret"] is None
    assert character["name"] == "Luna"


def test_private_character_hidden_from_other_users(client):
    register_and_login(client)
    created = create_character(client, visibility="PRIVATE")

    register_and_login(client, email="other@example.com", name="Other")
    assert client.get(f"/api/characters/{created['id']}").status_code == 404

    client.cookies.clear()
    assert client.get(f"/api/characters/{created['id']}").status_code == 404


def test_get_missing_character(client):
    response = client.get("/api/characters/does-not-exist")
    assert response.status_code == 404


def test_update_character(client):
    register_and_login(client)
    created = create_character(client)

    payload = dict(TEST_CHARACTER, name="Luna v2", exampleDialogs=[], visibility="LINK_ONLY")
    response = client.put(f"/api/characters/{created['id']}", json=payload)
    assert response.status_code == 200

    character = response.json()["character"]
    assert character["name"] == "Luna v2"
    assert character["visibility"] == "LINK_ONLY"
    assert character["exampleDialogs"] is None


def test_update_requires_owner(client):
    register_and_login(client)
    created = create_character(client)

    register_and_login(client, email="other@example.com", name="Other")
    response = client.put(f"/api/characters/{created['id']}", json=dict(TEST_CHARACTER, name="Hijacked"))
    assert response.status_code == 403

    assert client.put("/api/characters/does-not-exist", json=TEST_CHARACTER).status_code == 404


def test_delete_character(client):
    register_and_login(client)
    created = create_character(client)

    response = client.delete(f"/api/characters/{created['id']}")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get(f"/api/characters/{created['id']}").status_code == 404


def test_delete_requires_owner(client):
    register_and_login(client)
    created = create_character(client)

    register_and_login(client, email="other@example.com", name="Other")
    assert client.delete(f"/api/characters/{created['id']}").status_code == 403
    assert client.delete("/api/characters/does-not-exist").status_code == 404
