import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy import event, text

from triviaduel.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Both players may submit a score at the same moment; readers must not
# block the writer, and the loser of a write lock waits instead of failing.
SQLITE_PRAGMAS = {
    "journal_mode": "WAL",
    "busy_timeout": "30000",
    "foreign_keys": "ON",
}

_is_sqlite = settings.database_url.startswith("sqlite")
_is_sqlite_memory = ":memory:" in settings.database_url or "mode=memory" in settings.database_url

if _is_sqlite_memory:
    # One shared connection, so every session sees the same test database
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )

if _is_sqlite and not _is_sqlite_memory:
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        for pragma, value in SQLITE_PRAGMAS.items():
            cursor.execute(f"PRAGMA {pragma}={value};")
        cursor.close()


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Create any missing tables. Alembic owns real schema changes."""
    # Register models on the metadata before create_all
    import triviaduel.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if _is_sqlite and not _is_sqlite_memory:
        async with engine.connect() as conn:
            mode = (await conn.execute(text("PRAGMA journal_mode;"))).scalar()
            logger.info(f"SQLite journal mode: {mode}")
