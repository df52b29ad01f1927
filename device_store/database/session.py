# device_store/database/session.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from device_store.core.config import settings
from device_store.models.base import Base
from device_store.models import document  # noqa: F401  registers the documents table

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, expire_on_commit=False, class_=AsyncSession
)

def get_session_factory() -> async_sessionmaker:
    """
    Provide the session factory used by document stores.
    Overridden in tests to point at a throwaway database.
    """
    return async_session

async def initialize_db(bind=engine):
    """
    Create all tables defined in SQLAlchemy models.
    This method is idempotent and safe to run at startup.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
