"""Schema migrations for the fact store, run through Alembic's command API.

The revision scripts ship inside this package, so migrating works the same from
a source checkout and from an installed wheel. A checkout may still tune Alembic
through ``[tool.alembic]`` in ``pyproject.toml``.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

from factledger.config import get_database_config

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent
PYPROJECT_PATH: Final[Path] = Path(__file__).resolve().parents[5] / "pyproject.toml"

# locations are fixed to the bundled scripts
_IGNORED_OPTIONS: Final = frozenset({"script_location", "prepend_sys_path", "sqlalchemy.url"})

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def _checkout_options() -> dict[str, str]:
    try:
        with PYPROJECT_PATH.open("rb") as pyproject_file:
            document = tomllib.load(pyproject_file)
    except FileNotFoundError:
        return {}
    section = document.get("tool", {}).get("alembic", {})
    return {
        str(key): str(value) for key, value in section.items() if key not in _IGNORED_OPTIONS
    }


def alembic_config(*, database_uri: str | None = None) -> Config:
    """Alembic config pointing at the bundled revisions and ``database_uri``."""

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _checkout_options().items():
        config.set_main_option(key, value)
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Migrate ``engine`` (or the database at ``database_uri``) to the newest revision.

    With an engine the upgrade runs on one of its connections, which lets callers
    migrate in-memory SQLite databases they keep using afterwards.
    """

    if engine is None:
        command.upgrade(
            alembic_config(database_uri=database_uri or get_database_config().uri), "head"
        )
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")


def current_revision(engine: Engine) -> str | None:
    """Revision the database is stamped with, ``None`` before the first upgrade."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
