"""
Alembic migration environment configuration.

Loads the store URL and service credential from settings (never from
alembic.ini) and points autogenerate at the LMS models.

Supports both online (connected) and offline (SQL script) migrations.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

# Import our models so Alembic can detect schema changes
# This import must happen before we access Base.metadata
from lms.db.models import Base
from lms.config import settings
from lms.errors import ConfigurationError

# Alembic Config object - provides access to alembic.ini values
config = context.config

# Set up Python logging from alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# SQLAlchemy MetaData object for autogenerate support
target_metadata = Base.metadata


def _store_url():
    problems = settings.engine_config_problems()
    if problems:
        raise ConfigurationError("; ".join(problems))
    return settings.store_url()


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode.

    Usage:
        alembic upgrade head --sql > migration.sql
    """
    context.configure(
        url=_store_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Run migrations in 'online' mode.

    Usage:
        alembic upgrade head
    """
    # The credential goes straight into the URL object, not the ini
    # interpolation, so it never ends up in logs
    connectable = create_engine(_store_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
