from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from expensemgmt.core.config import settings
from expensemgmt.core.demo import DemoExpenseGateway
from expensemgmt.core.gateway import ExpenseGateway


# The engine is built on first use so demo mode and tests never load a driver
@lru_cache
def get_engine() -> AsyncEngine:
    return create_async_engine(
        settings.DATABASE_URL, echo=settings.DB_ECHO, pool_pre_ping=True
    )


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    # No refreshes after commit, every row is mapped before the session closes
    return async_sessionmaker(
        bind=get_engine(), class_=AsyncSession, expire_on_commit=False
    )


# The "Bridge" that gives the gateway access to the database
async def get_db():
    async with get_sessionmaker()() as session:
        yield session


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()


@lru_cache
def get_demo_gateway() -> DemoExpenseGateway:
    return DemoExpenseGateway()


# One gateway per request, bound to its own session
async def get_gateway():
    if settings.DEMO_MODE:
        yield get_demo_gateway()
        return

    async for session in get_db():
        yield ExpenseGateway(session)
