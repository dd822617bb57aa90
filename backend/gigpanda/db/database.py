from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from ..config import settings

DATABASE_URL = settings.async_database_url

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite connections must not outlive the event loop that opened them
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True}

def _enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def build_engine(url: str = DATABASE_URL):
    engine = create_async_engine(url, echo=settings.DB_ECHO, **_engine_options(url))
    if url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine.sync_engine)
    return engine

def build_sessionmaker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

engine = build_engine()
async_session = build_sessionmaker(engine)

Base = declarative_base()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

async def get_db():
    async with async_session() as db:
        try:
            yield db
        finally:
            await db.close()

def create_tables(url: str = None) -> None:
    """Create every table with a blocking engine, as done once at startup."""
    # registers every mapper on Base.metadata
    from ..models import (  # noqa: F401
        user, job, proposal, contract, notification, message, post, bookmark, stored_file
    )

    sync_engine = create_engine(url or settings.sync_database_url)
    try:
        Base.metadata.create_all(bind=sync_engine)
    finally:
        sync_engine.dispose()
