"""Alembic environment. Migrations run on a sync engine derived from the app URL."""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

from app.config.settings import get_settings
from app.db.base import Base

# Import all models so their tables are visible to Alembic
import app.db.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    # Allow override via -x db_url=... on the CLI
    url = context.get_x_argument(as_dictionary=True).get("db_url")
    if url:
        return url
    return config.get_main_option("sqlalchemy.url") or str(get_settings().database_url)


def get_sync_url() -> str:
    """The app runs on aiosqlite; alembic drives the plain sqlite3 driver."""
    return get_url().replace("+aiosqlite", "")


def run_migrations_offline() -> None:
    url = get_sync_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):  # type: ignore[no-untyped-def]
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER most constraints in place
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations using a synchronous engine (safe from any context)."""
    engine = create_engine(get_sync_url())
    with engine.connect() as connection:
        do_run_migrations(connection)
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
