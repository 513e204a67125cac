"""Typed access to environment variables."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def _read(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return every named variable, or raise naming all that are unset or blank."""

    values = {name: _read(name) for name in names}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in values.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def _optional[T](name: str, default: T, parse: Callable[[str], T], kind: str) -> T:
    raw = _read(name)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be {kind}, got {raw!r}") from exc


def optional_env_float(name: str, default: float) -> float:
    """Float setting; unset or blank means ``default``."""

    return _optional(name, default, float, "a number")


def optional_env_int(name: str, default: int) -> int:
    return _optional(name, default, int, "an integer")


def _parse_bool(raw: str) -> bool:
    word = raw.lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(raw)


def optional_env_bool(name: str, *, default: bool = False) -> bool:
    return _optional(name, default, _parse_bool, "a boolean")
