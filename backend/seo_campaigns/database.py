"""
Database configuration and session management.
Uses PostgreSQL via asyncpg with SQLAlchemy 2 async engine (SQLite via aiosqlite for local tests).
"""

import logging
import ssl
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from seo_campaigns.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_connect_args(database_url: str, ssl_mode: str = "disable") -> dict:
    """
    asyncpg connect args for DATABASE_SSL:
    disable = plain connection, require = encrypted without certificate checks
    (managed proxies with self-signed certs), verify-full = encrypted and verified.
    """
    if _is_sqlite(database_url):
        return {}
    args = {"timeout": 30}  # Fail fast if DB unreachable
    if ssl_mode == "require":
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        args["ssl"] = ctx
    elif ssl_mode == "verify-full":
        args["ssl"] = ssl.create_default_context()
    return args


def _get_connect_args() -> dict:
    return build_connect_args(settings.database_url, settings.database_ssl)


def _get_engine_kwargs() -> dict:
    kwargs = {"echo": False, "connect_args": _get_connect_args()}
    if not _is_sqlite(settings.database_url):
        kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)
    return kwargs


engine = create_async_engine(settings.database_url, **_get_engine_kwargs())

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db():
    """
    Create all tables defined in models.
    Uses create_all which is safe — it only creates tables that don't exist yet.
    """
    # Import models to ensure they are registered with Base.metadata
    import seo_campaigns.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database initialized with {len(Base.metadata.tables)} tables: "
                    f"{', '.join(Base.metadata.tables.keys())}")


async def check_db_connection() -> bool:
    """Test database connectivity."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
