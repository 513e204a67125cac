"""HTTP adapter: FastAPI application for fact ingestion and queries."""

from __future__ import annotations

from .api import ApiSettings, create_app

__all__ = ["ApiSettings", "create_app"]
