from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import URL, make_url
from .config import settings
from .models import Base


def async_database_url(url: str) -> URL:
    """Pick the async driver matching the URL scheme."""
    parsed_url = make_url(url)
    if parsed_url.drivername and parsed_url.drivername.startswith('sqlite'):
        # For SQLite, use aiosqlite driver
        return URL.create(
            drivername="sqlite+aiosqlite",
            database=parsed_url.database
        )
    # For PostgreSQL, use asyncpg driver
    return URL.create(
        drivername="postgresql+asyncpg",
        username=parsed_url.username,
        password=parsed_url.password,
        host=parsed_url.host,
        port=parsed_url.port,
        database=parsed_url.database,
        query=parsed_url.query  # Preserve SSL and other query parameters
    )


def build_engine(url: str, echo: bool = False):
    database_url = async_database_url(url)
    connect_args = {}
    if database_url.drivername.startswith("sqlite"):
        # Concurrent writers queue on the database lock instead of failing fast
        connect_args["timeout"] = settings.sqlite_busy_timeout_seconds
    return create_async_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )


def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind=None):
    """Create all tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind=None):
    """Drop all tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
