# FILE: tests/conftest.py
"""
Pytest configuration for the tutor test suite.

Configures:
- pytest-asyncio for async test support
- project root on sys.path
- shared fixtures: instruction set, scripted provider, in-memory interaction store
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from sqlalchemy.orm import sessionmaker

from app.db import create_db_engine, init_db
from app.interactions.store import InteractionStore
from app.llm.model_selector import InstructionSet
from app.llm.tutor import TutorDependencies
from config.settings import TutorSettings
from fakes import TEST_HMAC_KEY, TEST_MODEL, FakeProvider, text_events

# Configure pytest-asyncio to use auto mode
pytest_plugins = ["pytest_asyncio"]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def instructions():
    return InstructionSet(grader="GRADER PROMPT", free_response="FREE PROMPT", success="SUCCESS PROMPT")


@pytest.fixture
def fake_provider():
    return FakeProvider(events=text_events("Hel", "lo"))


@pytest.fixture
def tutor_deps(fake_provider, instructions):
    return TutorDependencies(provider=fake_provider, instructions=instructions, model=TEST_MODEL)


@pytest.fixture
def test_settings(tmp_path):
    return TutorSettings(
        api_key="test-key",
        azure_endpoint=None,
        api_version="2025-04-01-preview",
        model=TEST_MODEL,
        hmac_key=TEST_HMAC_KEY,
        database_url="sqlite://",
        prompts_dir=str(tmp_path),
        course_id="data8",
        assignment_id="",
        app_env="production",
    )


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across threads (background tasks run in a pool)."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def interaction_store(session_factory):
    return InteractionStore(session_factory)
