"""Async engine and session factory for the key-value store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from toolrelay.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.engine import URL
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)


def _sqlite_file(url: URL) -> Path | None:
    """Expanded database path for file-backed SQLite, else ``None``."""
    if url.get_backend_name() != "sqlite":
        return None
    if not url.database or url.database == ":memory:":
        return None
    return Path(url.database).expanduser()


async def create_db(
    url: str,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create the engine and session factory, creating tables if needed.

    SQLite files get their parent directory created and one connection
    per session. In-memory SQLite shares a single connection, otherwise
    each session would see its own empty database.
    """
    parsed = make_url(url)
    db_file = _sqlite_file(parsed)

    if db_file is not None:
        db_file.parent.mkdir(parents=True, exist_ok=True)
        parsed = parsed.set(database=str(db_file))
        engine = create_async_engine(parsed, poolclass=NullPool)
    elif parsed.get_backend_name() == "sqlite":
        engine = create_async_engine(
            parsed,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(parsed)

    logger.debug("Opening key-value database %s", parsed.render_as_string())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return factory, engine
