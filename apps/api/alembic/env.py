"""Alembic environment for the coaching CRM schema."""
from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from coachcrm.core.config import settings
from coachcrm.db.base import Base
import coachcrm.db.models  # noqa: F401  (registers tables on Base.metadata)

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def run_offline(url: str) -> None:
    """Render migrations as SQL for review or manual apply."""
    context.configure(
        url=url,
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=Base.metadata, **COMPARE_OPTIONS)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


# DATABASE_URL from settings is the only source of the migration target
if context.is_offline_mode():
    run_offline(settings.DATABASE_URL)
else:
    run_online(settings.DATABASE_URL)
