"""Integration Tests: DatabaseSessionManager against in-memory SQLite."""

import pytest
from sqlalchemy import text

from sage.core.errors import DatabaseError
from sage.infrastructure.database import DatabaseSessionManager


@pytest.fixture
async def manager():
    mgr = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    yield mgr
    await mgr.dispose()


async def test_health_check_ok(manager):
    assert await manager.health_check() is True


async def test_driver_errors_become_database_error(manager):
    with pytest.raises(DatabaseError) as exc:
        async with manager.session() as db:
            await db.execute(text("SELECT * FROM missing_table"))

    assert exc.value.operation == "execute"
    assert exc.value.http_status == 503


async def test_non_database_errors_pass_through(manager):
    with pytest.raises(ValueError):
        async with manager.session():
            raise ValueError("not ours")
