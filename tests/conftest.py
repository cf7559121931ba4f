"""Pytest configuration and shared fixtures for ideaengage tests."""

import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Generator

# Settings are read at import time; pin the testing profile before any
# ideaengage module is imported.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="ideaengage-test-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from loguru import logger  # noqa: E402
from sqlmodel import Session  # noqa: E402

from ideaengage.api import create_app  # noqa: E402
from ideaengage.claims import ClaimRegistry  # noqa: E402
from ideaengage.database import DatabaseManager  # noqa: E402
from ideaengage.interactions import InteractionStore  # noqa: E402
from ideaengage.models import BuilderProfileRow, IdeaRow  # noqa: E402


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


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
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Unique SQLite file path inside the test's temporary directory."""
    return tmp_path / f"test_ideaengage_{uuid.uuid4().hex[:8]}.db"


@pytest.fixture
def test_db_manager(temp_db_path: Path) -> Generator[DatabaseManager, None, None]:
    """File-backed database manager, so several connections see one database."""
    db = DatabaseManager(database_path=temp_db_path)
    db.initialize()

    yield db

    db.close()


@pytest.fixture
def memory_db_manager() -> Generator[DatabaseManager, None, None]:
    """In-memory database manager for fast single-connection tests."""
    db = DatabaseManager(database_url="sqlite:///:memory:")
    db.initialize()

    yield db

    db.close()


@pytest.fixture
def test_session(test_db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """Session on the temporary database."""
    with test_db_manager.session_scope() as session:
        yield session


@pytest.fixture
def registry(test_session: Session) -> ClaimRegistry:
    """Claim registry with default collaborators."""
    return ClaimRegistry(test_session)


@pytest.fixture
def store(test_session: Session) -> InteractionStore:
    """Interaction store without an idea catalog."""
    return InteractionStore(test_session)


# =============================================================================
# Seed Data Fixtures
# =============================================================================


@pytest.fixture
def seeded_profiles(test_session: Session) -> list[BuilderProfileRow]:
    """Two builder profiles: alice has a full profile, bob only a first name."""
    profiles = [
        BuilderProfileRow(
            user_id="alice",
            first_name="Alice",
            last_name="Nguyen",
            profile_image_url="https://example.com/alice.png",
        ),
        BuilderProfileRow(user_id="bob", first_name="Bob"),
    ]
    test_session.add_all(profiles)
    test_session.commit()
    return profiles


@pytest.fixture
def seeded_ideas(test_session: Session) -> list[IdeaRow]:
    """Two known ideas for catalog checks."""
    ideas = [
        IdeaRow(id="idea-1", title="AI meal planner", slug="ai-meal-planner"),
        IdeaRow(id="idea-2", title="Invoice reconciler", slug="invoice-reconciler"),
    ]
    test_session.add_all(ideas)
    test_session.commit()
    return ideas


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def client(test_db_manager: DatabaseManager) -> Generator[TestClient, None, None]:
    """TestClient serving the API from the temporary database."""
    app = create_app(test_db_manager)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def alice() -> dict[str, str]:
    """Identity header for alice."""
    return {"X-User-Id": "alice"}


@pytest.fixture
def bob() -> dict[str, str]:
    """Identity header for bob."""
    return {"X-User-Id": "bob"}
