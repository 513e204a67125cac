"""HTTP API configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import optional_env_int

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8000
DEFAULT_FACT_QUERY_LIMIT = 200


@dataclass(frozen=True, slots=True)
class ApiConfig:
    host: str = DEFAULT_API_HOST
    port: int = DEFAULT_API_PORT
    fact_query_limit: int = DEFAULT_FACT_QUERY_LIMIT


def get_api_config() -> ApiConfig:
    return ApiConfig(
        host=os.getenv("FACTLEDGER_API_HOST") or DEFAULT_API_HOST,
        port=optional_env_int("FACTLEDGER_API_PORT", DEFAULT_API_PORT),
        fact_query_limit=optional_env_int(
            "FACTLEDGER_FACT_QUERY_LIMIT", DEFAULT_FACT_QUERY_LIMIT
        ),
    )
