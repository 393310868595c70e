from message_reactions.config import settings
from message_reactions.models import Base
from logging.config import fileConfig
from sqlalchemy import engine_from_config, make_url
from sqlalchemy import pool
from alembic import context

config = context.config

# Set up loggers from the ini file
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _synchronous_url(async_url: str) -> str:
    url = make_url(async_url)
    driver = url.drivername

    if driver == "postgresql+asyncpg":
        url = url.set(drivername="postgresql+psycopg")
    elif driver in {"postgresql+psycopg_async", "postgresql+psycopg2"}:
        url = url.set(drivername="postgresql+psycopg")
    elif driver == "sqlite+aiosqlite":
        url = url.set(drivername="sqlite+pysqlite")
    elif "+" in driver:
        # Fallback: drop async suffix if present
        url = url.set(drivername=driver.split("+")[0])

    return url.render_as_string(hide_password=False)


sync_database_url = _synchronous_url(settings.database_url)
config.set_main_option("sqlalchemy.url", sync_database_url.replace("%", "%%"))


def get_url():
    return sync_database_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL without a connection."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    configuration = config.get_section(config.config_ini_section)
    configuration["sqlalchemy.url"] = get_url()
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
