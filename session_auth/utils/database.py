# session_auth/utils/database.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from session_auth import config

engine_kwargs = {"echo": False, "future": True}
if config.DATABASE_URL.startswith("sqlite"):
    # aiosqlite connections are bound to the loop that opened them
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(config.DATABASE_URL, **engine_kwargs)
AsyncSessionLocal = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

# Dependency for route injection
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
