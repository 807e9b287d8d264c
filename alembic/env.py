"""
env.py — Alembic environment for the triage schema

The database URL always comes from triage settings (DATABASE_URL), never
from alembic.ini, so the app and its migrations can't disagree.

Business Rules:
- One transaction per migration run
- SQLite runs in batch mode (ALTER TABLE support)
- Column type changes are picked up by autogenerate

Called by: alembic CLI
Depends on: triage.config (settings), triage.models (Base metadata)
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from triage.config import settings
from triage.models import Base

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

COMMON_OPTS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "render_as_batch": settings.is_sqlite,
}


def run_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMMON_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(settings.database_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **COMMON_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
