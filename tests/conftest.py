"""Shared test fixtures and configuration.

Sets up fake environment variables before any src imports (no LLM key, so
the keyword strategy is selected), and provides temp-DB fixtures.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ["LLM_API_KEY"] = ""  # keyword strategy unless a test opts in
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_aura.db")


@pytest.fixture
def store(tmp_db_path):
    """Return a Store backed by a temp file."""
    from src.data.db import Store
    return Store(db_path=tmp_db_path)


@pytest.fixture
def user(store):
    """A registered user with the default categories."""
    return store.register_user("alex", name="Alex", email="alex@example.com")


@pytest.fixture
def other_user(store):
    return store.register_user("sam", name="Sam")
