"""Pytest configuration and shared fixtures for RecipeShare tests."""

import os
import sys
import tempfile

# Settings are read at import time, so the test profile must be selected first
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="recipeshare_test_"))

from collections.abc import Generator
from pathlib import Path

import pytest
from loguru import logger

from recipeshare.database import DatabaseManager
from recipeshare.engine import RecipeShareEngine
from recipeshare.identity import Identity
from recipeshare.schemas import RecipeDraft
from recipeshare.storage import LocalBlobStore

# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


# =============================================================================
# Collaborator Fakes
# =============================================================================


SUGGESTIONS_TEXT = """Here are some ideas!
[
  {"title": "Spinach Omelette", "description": "Fluffy and green.",
   "ingredients": ["3 eggs", "1 cup spinach"], "steps": ["Whisk", "Cook"],
   "prepTime": 10, "servings": 1, "cuisine": "French", "tags": ["quick"]},
  {"title": "Feta Frittata", "ingredients": ["eggs", "feta"], "steps": ["Bake"],
   "prepTime": 25, "servings": 4, "cuisine": "Greek", "tags": ["brunch"]}
]
Enjoy!"""


class FakeLLMClient:
    """In-memory ILLMClient returning a canned answer and recording prompts."""

    def __init__(self, response: str = SUGGESTIONS_TEXT, error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []
        self.closed = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Database & Engine Fixtures
# =============================================================================


@pytest.fixture
def db() -> Generator[DatabaseManager, None, None]:
    """Fresh in-memory database per test."""
    manager = DatabaseManager(database_path=Path(":memory:"))
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def file_db(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """File-backed database in a temporary directory."""
    manager = DatabaseManager(database_path=tmp_path / "recipeshare.db")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(root=tmp_path / "blobs", base_url="https://cdn.test/img")


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def engine(
    db: DatabaseManager,
    blob_store: LocalBlobStore,
    fake_llm: FakeLLMClient,
) -> RecipeShareEngine:
    return RecipeShareEngine(db=db, blob_store=blob_store, llm_client=fake_llm)


# =============================================================================
# Identity & Data Fixtures
# =============================================================================


@pytest.fixture
def alice() -> Identity:
    """Recipe author."""
    return Identity(user_id="alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="bob", name="Bob", email="bob@example.com")


@pytest.fixture
def carol() -> Identity:
    return Identity(user_id="carol", email="carol@example.com")


@pytest.fixture
def draft() -> RecipeDraft:
    return RecipeDraft(
        title="Tomato Soup",
        description="Simple weeknight soup.",
        ingredients=["4 tomatoes", "1 onion", "2 cups stock"],
        steps=["Chop everything", "Simmer 20 minutes", "Blend"],
        cuisine="Italian",
        tags=["Soup", "quick"],
        prep_time=30,
        servings=4,
    )


@pytest.fixture
def recipe_id(engine: RecipeShareEngine, alice: Identity, draft: RecipeDraft) -> str:
    """An approved recipe authored by alice."""
    engine.ensure_profile(alice)
    return engine.create_recipe(alice, draft)


@pytest.fixture
def users(engine: RecipeShareEngine, alice: Identity, bob: Identity, carol: Identity) -> None:
    """Make alice, bob and carol known to the engine."""
    for identity in (alice, bob, carol):
        engine.ensure_profile(identity)


@pytest.fixture
def file_engine(
    file_db: DatabaseManager,
    blob_store: LocalBlobStore,
    fake_llm: FakeLLMClient,
) -> RecipeShareEngine:
    """Engine on a file database, where sessions use separate connections."""
    return RecipeShareEngine(db=file_db, blob_store=blob_store, llm_client=fake_llm)


@pytest.fixture
def file_recipe_id(
    file_engine: RecipeShareEngine,
    alice: Identity,
    bob: Identity,
    draft: RecipeDraft,
) -> str:
    """Alice's recipe in the file database, with bob already known."""
    file_engine.ensure_profile(alice)
    file_engine.ensure_profile(bob)
    return file_engine.create_recipe(alice, draft)
