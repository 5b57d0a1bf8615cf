import os
import tempfile
from dataclasses import replace

# Settings are cached on first import, so point them at throwaway locations first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="edutrack-uploads-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from edutrack.ai.config import DEFAULT_PROVIDERS, AIConfig
from edutrack.ai.providers import AIResponse
from edutrack.ai.service import AIService
from edutrack.core.config import Settings, get_settings
from edutrack.database import Base, get_db
from edutrack.dependencies import get_ai_service, get_storage
from edutrack.storage import BucketStorage
from main import app

FENCED_QUIZ = """Here you go:
```json
[
  {"question": "What is 2+2?", "options": ["3", "4", "5", "6"], "correctAnswer": 1, "explanation": "Basic addition"},
  {"question": "Missing explanation", "options": ["a", "b", "c", "d"], "correctAnswer": 0}
]
```"""


def fake_ai_config(*keys):
    providers = {key: replace(DEFAULT_PROVIDERS[key], api_key=f"test-{key}") for key in keys}
    return AIConfig(providers=providers, fallback_order=list(keys))


class FakeProvider:
    """Caller that records prompts and returns a canned answer."""

    def __init__(self, key, content=FENCED_QUIZ, success=True, error=None):
        self.key = key
        self.content = content
        self.success = success
        self.error = error
        self.prompts = []

    def __call__(self, provider, prompt, context=None):
        self.prompts.append(prompt)
        if isinstance(self.error, Exception):
            raise self.error
        return AIResponse(success=self.success, content=self.content, provider=self.key, error=self.error)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def storage(tmp_path):
    return BucketStorage(str(tmp_path / "uploads"), "/uploads")


@pytest.fixture()
def fake_provider():
    return FakeProvider("gemini")


@pytest.fixture()
def test_settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        upload_dir=str(tmp_path / "uploads"),
        secret_key="test-secret",
        ai=fake_ai_config("gemini"),
    )


@pytest.fixture()
def make_client(db_session, storage, fake_provider, test_settings):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_ai_service] = lambda: AIService(test_settings.ai, {"gemini": fake_provider})

    def factory():
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


def register(client, email, role, full_name=None, password="secret123"):
    res = client.post("/auth/register", json={
        "email": email,
        "password": password,
        "role": role,
        "full_name": full_name,
    })
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture()
def teacher_client(make_client):
    client = make_client()
    client.profile = register(client, "teacher@example.com", "teacher", "Ada Teacher")
    return client


@pytest.fixture()
def student_client(make_client):
    client = make_client()
    client.profile = register(client, "student@example.com", "student", "Sam Student")
    return client
