"""Errors raised while reading factledger settings."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but unusable (wrong type or out of range)."""


class MissingConfigurationError(ConfigurationError):
    """One or more required settings are unset or blank."""

    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")
