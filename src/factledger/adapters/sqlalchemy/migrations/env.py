"""Alembic environment for the fact store schema."""

from __future__ import annotations

import logging
from logging.config import fileConfig
from pathlib import Path
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from factledger.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from factledger.config import get_database_config

config = context.config

# only a classic alembic.ini carries logging sections
if config.config_file_name is not None and Path(config.config_file_name).suffix == ".ini":
    fileConfig(config.config_file_name, disable_existing_loggers=False)

log = logging.getLogger("alembic.env")

start_mappers()
target_metadata = mapper_registry.metadata


def _configure_and_run(**options: Any) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **options,
    )
    with context.begin_transaction():
        context.run_migrations()


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without a live connection."""

    log.info("Rendering migrations offline")
    _configure_and_run(url=_database_url(), literal_binds=True)


def run_migrations_online() -> None:
    shared_connection = config.attributes.get("connection")
    if shared_connection is not None:
        _configure_and_run(connection=shared_connection)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as connection:
            _configure_and_run(connection=connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
