from logging.config import fileConfig
import logging

from sqlalchemy import create_engine
from sqlalchemy import pool

from alembic import context

# Import all models to ensure they're registered with SQLAlchemy metadata
from helpdesk_rules.database.base import Base
from helpdesk_rules.core.config import settings

# Configure logger
logger = logging.getLogger("alembic")

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
# This line sets up loggers basically.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    url = settings.DATABASE_URI or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URI is not configured")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL
    and not an Engine. Calls to context.execute() here emit the given
    string to the script output.
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a synchronous engine."""
    url = get_url()
    logger.info("Running migrations against configured DATABASE_URI")
    connectable = create_engine(url, poolclass=pool.NullPool)

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
