"""
Pytest configuration and fixtures for the MathMind tests.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mathmind.models import Base, Choice, Node, TaskGraphCreate
from mathmind.services.graph_service import clear_graph_cache, create_task_graph


@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    """Create a test database engine backed by a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def _fresh_graph_cache():
    """Graphs are cached per process; every test starts with an empty cache."""
    clear_graph_cache()
    yield
    clear_graph_cache()


@pytest.fixture
def walkthrough_graph() -> TaskGraphCreate:
    """
    root --(mistake)--> root, root --(correct)--> mid, mid --(correct)--> end.

    end is terminal.
    """
    return TaskGraphCreate(
        id="walkthrough",
        title="Walkthrough",
        root_node="root",
        nodes=[
            Node(
                key="root",
                prompt="3x + 12 = 42. What first?",
                choices=[
                    Choice(
                        key="wrong",
                        text="Divide by 3",
                        is_mistake=True,
                        mistake_type="skipped step",
                        hint="Remove the constant first.",
                        next_node="root",
                    ),
                    Choice(key="right", text="Subtract 12", next_node="mid"),
                ],
            ),
            Node(
                key="mid",
                prompt="3x = 30. What next?",
                choices=[Choice(key="divide", text="Divide by 3", next_node="end")],
            ),
            Node(key="end", prompt="x = 10", terminal=True),
        ],
    )


@pytest.fixture
def one_step_graph() -> TaskGraphCreate:
    """root --(correct, no next node)--> completes."""
    return TaskGraphCreate(
        id="one-step",
        title="One step",
        root_node="root",
        nodes=[
            Node(
                key="root",
                prompt="900 with a 30% coupon?",
                choices=[
                    Choice(key="ok", text="900 × 0.7"),
                    Choice(
                        key="bad",
                        text="900 - 30",
                        is_mistake=True,
                        mistake_type="percent as amount",
                        next_node="root",
                    ),
                ],
            )
        ],
    )


@pytest_asyncio.fixture
async def walkthrough_task(async_session, walkthrough_graph):
    """The walkthrough graph, registered."""
    return await create_task_graph(async_session, walkthrough_graph)


@pytest_asyncio.fixture
async def one_step_task(async_session, one_step_graph):
    """The one-step graph, registered."""
    return await create_task_graph(async_session, one_step_graph)
