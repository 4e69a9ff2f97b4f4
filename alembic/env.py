"""Alembic environment for the botgate schema.

Migrations run against the sync (psycopg2) URL the workers use; the
``sqlalchemy.url`` option in alembic.ini wins when set.
"""

from __future__ import annotations

from sqlalchemy import create_engine, pool

from alembic import context
from botgate.config import get_settings
from botgate.models import Base

target_metadata = Base.metadata


def get_url() -> str:
    """Return the database URL from alembic config or application settings."""
    url = context.config.get_main_option("sqlalchemy.url")
    if url:
        return url
    return get_settings().worker_database_url


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database."""
    connectable = create_engine(get_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
