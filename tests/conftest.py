"""Shared pytest fixtures for TaleTree tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from taletree.db.connection import Database
from taletree.dialogue.router import get_dialogue_service
from taletree.dialogue.service import DialogueService
from taletree.events.projector import StateProjector
from taletree.events.store import EventStore
from taletree.main import app
from tests.fixtures import StubSummarizer


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def event_store(db):
    """EventStore backed by in-memory database."""
    return EventStore(db)


@pytest.fixture
async def projector(db):
    """StateProjector backed by in-memory database."""
    return StateProjector(db)


@pytest.fixture
def summarizer():
    """Summarizer stub returning a fixed compressed summary."""
    return StubSummarizer("stub summary")


@pytest.fixture
async def service(db, summarizer):
    """DialogueService whose summarizer lookup always returns the stub."""
    return DialogueService(db, summarizer_factory=lambda llm_type: summarizer)


@pytest.fixture
async def client(service):
    """Async test client with in-memory DB wired into the app."""
    app.dependency_overrides[get_dialogue_service] = lambda: service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
