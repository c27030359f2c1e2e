"""Service test fixtures — async DB, fake reference data, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db, rate-limit store, settings, and conversation loop are overridden per test
    - The loop talks to MockAnthropicClient (`llm` fixture), never the network

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
    - db_manager patched: readiness probe uses db_manager directly
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

import sage.infrastructure.database as db_module
from sage.api.dependencies import get_conversation_loop
from sage.api.rate_limit import get_rate_limit_store
from sage.config import Settings, get_settings
from sage.core.rate_limit import RateLimitStore
from sage.db.base import Base
from sage.infrastructure.database import DatabaseSessionManager, get_db
from sage.main import app
from sage.models.reference import ReferenceAdversary, ReferenceFrame, ReferenceItem
from sage.services.conversation_loop import ConversationLoop
from sage.services.session_repository import create_session

from tests.services.mock_anthropic import MockAnthropicClient


class FakeReferences:
    """In-memory ReferenceRepository."""

    def __init__(self):
        self.frames = {
            "witherwild": {
                "id": "witherwild", "name": "The Witherwild",
                "description": "A corrupted forest", "themes": ["nature", "corruption"],
                "typicalAdversaries": ["treant"], "lore": "",
            },
        }
        self.adversaries = [{"id": "goblin", "name": "Goblin", "tier": 1, "type": "minion"}]
        self.items = [{"id": "potion", "name": "Minor Potion", "tier": 1, "category": "consumable"}]
        self.calls = []

    async def list_frames(self, themes, limit):
        self.calls.append(("list_frames", themes, limit))
        return list(self.frames.values())[:limit]

    async def get_frame(self, frame_id):
        return self.frames.get(frame_id)

    async def list_adversaries(self, tier, adversary_type, limit):
        self.calls.append(("list_adversaries", tier, adversary_type, limit))
        return [a for a in self.adversaries if tier is None or a["tier"] == tier][:limit]

    async def list_items(self, tier, category, limit):
        self.calls.append(("list_items", tier, category, limit))
        return [i for i in self.items if tier is None or i["tier"] == tier][:limit]


@pytest.fixture
def references():
    return FakeReferences()


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def seed_references(test_db):
    test_db.add_all([
        ReferenceFrame(
            id="witherwild", name="The Witherwild", description="A corrupted forest",
            themes=["nature", "corruption"], typical_adversaries=["treant"], lore="",
        ),
        ReferenceFrame(
            id="five-banners", name="Five Banners Burning", description="War of succession",
            themes=["war", "politics"], typical_adversaries=["soldier"], lore="",
        ),
        ReferenceAdversary(
            id="goblin", name="Goblin", tier=1, adversary_type="minion",
            difficulty=10, description="", stat_block={"hp": 1},
        ),
        ReferenceAdversary(
            id="dragon", name="Young Dragon", tier=3, adversary_type="solo",
            difficulty=17, description="", stat_block={"hp": 10},
        ),
        ReferenceItem(id="potion", name="Minor Potion", tier=1, category="consumable"),
        ReferenceItem(id="blade", name="Runed Blade", tier=2, category="weapon"),
    ])
    await test_db.commit()


@pytest.fixture
async def seed_session(test_db):
    row = await create_session(test_db, user_id="gm-1")
    await test_db.commit()
    return row


@pytest.fixture
def llm():
    return MockAnthropicClient()


@pytest.fixture
def settings():
    return Settings(
        rate_limit_auth_max_requests=3,
        rate_limit_chat_max_requests=20,
        rate_limit_general_max_requests=100,
    )


@pytest.fixture
def rate_store():
    return RateLimitStore()


@pytest.fixture
async def client(test_engine, test_session_factory, llm, settings, rate_store):
    """FastAPI test client with DB, settings, limiter, and LLM overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    loop = ConversationLoop(llm, model="claude-test", max_tokens=1024, max_turns=10)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_rate_limit_store] = lambda: rate_store
    app.dependency_overrides[get_conversation_loop] = lambda: loop

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
