import os

# Keep the module-level app in kirakira.main off disk while tests run
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kirakira.core.config import Settings
from kirakira.db.database import Base, get_db, get_session_factory
from kirakira.main import create_app
from kirakira.services import chat_service, image_service

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "password123"

TEST_CHARACTER = {
    "name": "Luna",
    "description": "A cheerful librarian who loves old maps",
    "personality": "Curious and kind. Calls {{user}} by name.",
    "greeting": "Welcome to the archive!",
    "greetings": ["Hello again!", "Back so soon?"],
    "secret": "She is secretly a dragon",
    "exampleDialogs": [{"user": "Hi {{char}}", "char": "Hello, {{user}}!"}],
    "visibility": "PUBLIC",
}


class FakeStream:
    """Stands in for a streaming model response."""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error


class FakeModelProvider:
    def __init__(self):
        self.chunks = ["안녕", "하세요"]
        self.error = None
        self.scene = "Luna smiles over a pile of maps"
        self.calls = []

    def stream_chat(self, history, message, system_prompt=None, model=None):
        self.calls.append({
            "history": history,
            "message": message,
            "system_prompt": system_prompt,
            "model": model,
        })
        return FakeStream(self.chunks, self.error)

    async def generate_text(self, prompt, model=None):
        self.calls.append({"prompt": prompt, "model": model})
        return self.scene


@pytest.fixture
def test_db():
    # Create the SQLite engine with SQLAlchemy for testing
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Create the tables
    Base.metadata.create_all(bind=engine)

    yield TestingSessionLocal

    # Drop all tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    db = test_db()
    yield db
    db.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret",
        environment="test",
        upload_dir=str(tmp_path / "uploads"),
        google_oauth=None,
    )


@pytest.fixture
def app(test_db, settings):
    application = create_app(settings)

    # Dependency override
    def override_get_db():
        try:
            db = test_db()
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_session_factory] = lambda: test_db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fake_model(monkeypatch):
    """Replace the chat model everywhere it is called"""
    fake = FakeModelProvider()
    monkeypatch.setattr(chat_service, "model_provider", fake)
    monkeypatch.setattr(image_service, "model_provider", fake)
    return fake


def register_and_login(client, email="user@example.com", name="Tester", password=TEST_PASSWORD):
    """Create an account and leave the client logged in as it. Returns the user id."""
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201
    login = client.post("/api/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200
    return response.json()["userId"]


def create_character(client, **overrides):
    payload = dict(TEST_CHARACTER, **overrides)
    response = client.post("/api/characters", json=payload)
    assert response.status_code == 201
    return response.json()["character"]
