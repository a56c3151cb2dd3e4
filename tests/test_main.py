from fastapi.testclient import TestClient
from sqlalchemy import inspect

from conftest import register_and_login

from kirakira.core.config import Settings
from kirakira.main import create_app
from kirakira.models.user import User


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_cors_allows_frontend_with_credentials(client, settings):
    response = client.options("/api/characters/public", headers={
        "Origin": settings.frontend_url,
        "Access-Control-Request-Method": "GET",
    })
    assert response.headers["access-control-allow-origin"] == settings.frontend_url
    assert response.headers["access-control-allow-credentials"] == "true"


def test_app_uses_configured_database(tmp_path):
    """Tables and request data land in the database named by the settings"""
    db_path = tmp_path / "kirakira.db"
    settings = Settings(
        database_url=f"sqlite:///{db_path}",
        jwt_secret="test-secret",
        environment="test",
        upload_dir=str(tmp_path / "uploads"),
        google_oauth=None,
    )
    app = create_app(settings)

    assert db_path.exists()
    tables = set(inspect(app.state.engine).get_table_names())
    assert {"users", "characters", "conversations", "messages", "api_usage"} <= tables

    with TestClient(app) as client:
        register_and_login(client)

    db = app.state.session_factory()
    try:
        assert db.query(User).filter(User.email == "user@example.com").count() == 1
    finally:
        db.close()
    app.state.engine.dispose()
