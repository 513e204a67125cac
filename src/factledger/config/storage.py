"""Where the fact store lives.

``DATABASE_URI`` selects any SQLAlchemy database. Without it the store is a SQLite
file in ``FACTLEDGER_DATA_DIR`` (or the platform's per-user data directory).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_bool

APP_DIR_NAME: Final[str] = "factledger"
DEFAULT_DB_FILENAME: Final[str] = "factledger.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def sqlite_uri(self, *, create_dir: bool = True) -> str:
        """URI of the SQLite fact store, creating its directory unless told not to."""

        data_dir = self.resolve_data_dir()
        if create_dir:
            data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def default_data_dir() -> Path:
    if os.name == "nt":
        root = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        root = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(root).expanduser().resolve() / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    override = os.getenv("FACTLEDGER_DATA_DIR")
    if override and override.strip():
        return StorageConfig(data_dir=Path(override.strip()))
    return StorageConfig(data_dir=default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    echo = optional_env_bool("FACTLEDGER_DB_ECHO")
    uri = os.getenv("DATABASE_URI")
    if uri and uri.strip():
        return DatabaseConfig(uri=uri.strip(), echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri(), echo=echo)
