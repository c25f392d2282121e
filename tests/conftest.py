"""
Pytest configuration and shared fixtures.

The database and the upload directory are pointed at a throwaway temp
directory before any janmitra module is imported, so the engine and the
static mount are created against it.
"""

import os
import tempfile
from pathlib import Path

_TEST_ROOT = tempfile.mkdtemp(prefix="janmitra-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from janmitra.config import settings
from janmitra.main import app, get_model_client
from janmitra.schemas import GenerateContentResponse
from janmitra.storage import Base, engine


MODEL_TEXT = "Potholes are usually fixed within a week."


def gemini_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class FakeModelClient:
    """Stands in for GeminiClient; records every call it receives."""

    def __init__(self, response=None, exc=None):
        self.response = response or GenerateContentResponse.model_validate(gemini_payload(MODEL_TEXT))
        self.exc = exc
        self.calls = []

    async def generate(self, message, system_instruction):
        self.calls.append((message, system_instruction))
        if self.exc is not None:
            raise self.exc
        return self.response


def uploaded_files() -> list:
    """Names of every file currently in the upload directory."""
    return sorted(p.name for p in Path(settings.UPLOAD_DIR).iterdir() if p.is_file())


def submit_report(client, filename="pothole.jpg", content=b"\xff\xd8\xff\xe0fake-jpeg", **fields):
    """Helper to POST a report with an image attached."""
    return client.post(
        "/api/report",
        data=fields,
        files={"image": (filename, content, "image/jpeg")},
    )


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture(scope="function")
def client(model_client):
    """Create test client with a fresh database and upload directory for each test."""
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_model_client] = lambda: model_client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    for path in Path(settings.UPLOAD_DIR).iterdir():
        if path.is_file():
            path.unlink()
