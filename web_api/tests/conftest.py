# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Routes are exercised through the real app with the database context
managers and facade functions patched, so no PostgreSQL is needed.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

# Ensure we import from root main.py
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

TEST_JWT_SECRET = "test-secret-for-academy-api-0123456789abcdef"

ROUTE_MODULES = (
    "web_api.routes.catalog",
    "web_api.routes.course_content",
    "web_api.routes.quizzes",
)


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Sign and verify test tokens with a fixed secret."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    return TEST_JWT_SECRET


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Factory for Authorization headers carrying a customer token."""
    from web_api.auth import create_jwt

    def make(customer_id: int = 42, role: str | None = None) -> dict:
        return {"Authorization": f"Bearer {create_jwt(customer_id, role=role)}"}

    return make


@pytest.fixture
def mock_db():
    """Patch get_connection/get_transaction in every route module.

    Yields the AsyncMock connection handed to the facade.
    """
    mock_conn = AsyncMock()
    patchers = []
    for module in ROUTE_MODULES:
        for name in ("get_connection", "get_transaction"):
            patcher = patch(f"{module}.{name}")
            mock_cm = patcher.start()
            mock_cm.return_value.__aenter__.return_value = mock_conn
            mock_cm.return_value.__aexit__.return_value = None
            patchers.append(patcher)

    yield mock_conn

    for patcher in patchers:
        patcher.stop()
