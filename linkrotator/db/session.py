"""
Database Session Management

One async engine per process, built by the dialect adapter, and a session
factory shared by two consumers:
- Request handlers, through the ``get_session`` dependency
- DatabaseCounterStore, which opens a short session per admission check
  when RATE_LIMIT_BACKEND=database
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from linkrotator.core.setting import settings
from linkrotator.db.sqlite_adapter import get_database_adapter

db_adapter = get_database_adapter()

engine = db_adapter.create_engine(settings.DATABASE_URL)

async_session_maker = async_sessionmaker(
    engine,
    class_=SQLModelAsyncSession,
    expire_on_commit=False,  # Rules are read after commit to build the response
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session per request.
    
    Commits when the endpoint returns normally and rolls back when it raises,
    including the HTTPException raised for 4xx outcomes.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
