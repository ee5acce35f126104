"""
Alembic environment for arsipdb.

The URL comes from DATABASE_WRITE_URL / DATABASE_URL, or from
``sqlalchemy.url`` in alembic.ini when that is not the template value.
Run from ``backend/``: ``alembic upgrade head``.
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    url = (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        url = (config.get_main_option("sqlalchemy.url") or "").strip()
        if url.startswith("driver://"):
            url = ""
    if not url:
        raise RuntimeError("No database URL: set DATABASE_URL or sqlalchemy.url in alembic.ini")
    # arsipdb.database reads the environment when imported
    os.environ.setdefault("DATABASE_URL", url)
    config.set_main_option("sqlalchemy.url", url)
    return url


DATABASE_URL = _database_url()

import arsipdb  # noqa: E402,F401  (registers every app's tables)
from arsipdb.database import Base, write_engine  # noqa: E402

target_metadata = Base.metadata

COMPARE = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(url=DATABASE_URL, target_metadata=target_metadata, literal_binds=True, **COMPARE)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with write_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite cannot ALTER constraints in place
            render_as_batch=connection.dialect.name == "sqlite",
            **COMPARE,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
