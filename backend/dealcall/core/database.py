from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from dealcall.core.config import DATABASE_URL as _RAW_DATABASE_URL, SQL_ECHO

# Get database URL and convert to async
DATABASE_URL = _RAW_DATABASE_URL
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql", "postgresql+asyncpg", 1)

# Create async engine
engine = create_async_engine(
    DATABASE_URL,
    echo=SQL_ECHO,
    future=True
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class for models
Base = declarative_base()

# Dependency for FastAPI
async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
