"""
Pytest fixtures and configuration for testing.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chainscope.agent.graph import execute_workflow
from chainscope.agent.services import AnalysisServices
from chainscope.db.base import Base
from chainscope.jobs.queue import AnalysisQueue
from chainscope.main import create_app
from tests.fakes import (
    FOCAL,
    POOL_PDA,
    WASH_TRADER,
    FakeEntityProvider,
    FakeTransactionProvider,
    abnormal_history,
    wash_trader_history,
)


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create test database engine (file-backed SQLite shared by every session)."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'chainscope.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def test_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def transaction_provider() -> FakeTransactionProvider:
    return FakeTransactionProvider(
        histories={
            FOCAL: abnormal_history(),
            WASH_TRADER: wash_trader_history(),
        }
    )


@pytest.fixture
def entity_provider() -> FakeEntityProvider:
    return FakeEntityProvider(
        search_results={POOL_PDA: {"success": True, "data": [{"isOnCurve": False}]}}
    )


@pytest.fixture
def services(transaction_provider, entity_provider) -> AnalysisServices:
    """Services in mock completion mode over the fake providers."""
    return AnalysisServices(
        transaction_provider=transaction_provider,
        entity_provider=entity_provider,
        completion_service=None,
    )


@pytest_asyncio.fixture
async def job_queue(session_maker, services) -> AsyncGenerator[AnalysisQueue, None]:
    """Queue that runs the real pipeline against the fake services."""

    async def runner(job_id, query, session):
        return await execute_workflow(job_id, query, session=session, services=services)

    queue = AnalysisQueue(
        session_maker=session_maker,
        runner=runner,
        backoff_seconds=0,
    )
    yield queue
    await queue.close()


@pytest_asyncio.fixture
async def test_client(job_queue) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    app = create_app(job_queue=job_queue)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
