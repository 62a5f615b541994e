# tests/conftest.py
import os
import tempfile

# Point the app at a throwaway SQLite file before anything reads settings.
_DB_DIR = tempfile.mkdtemp(prefix="meeting-patterns-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from meeting_patterns.main import create_app  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all API tests.

    Entering the client runs the app lifespan, which creates the schema.
    Tests isolate themselves by using their own calendar ids.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
