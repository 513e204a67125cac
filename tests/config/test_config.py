from __future__ import annotations

import logging
from pathlib import Path

import pytest

from factledger.config import (
    ApiConfig,
    ConfigurationError,
    ConflictPolicyConfig,
    MissingConfigurationError,
    StorageConfig,
    get_api_config,
    get_conflict_policy_config,
    get_database_config,
    get_storage_config,
    log_level_from_env,
    optional_env_bool,
    optional_env_float,
    optional_env_int,
    require_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_optional_numbers_fall_back_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_NUMBER", raising=False)

    assert optional_env_float("EXAMPLE_NUMBER", 0.5) == 0.5
    assert optional_env_int("EXAMPLE_NUMBER", 7) == 7


def test_optional_numbers_reject_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_NUMBER", "lots")

    with pytest.raises(ConfigurationError, match="EXAMPLE_NUMBER"):
        optional_env_float("EXAMPLE_NUMBER", 0.5)
    with pytest.raises(ConfigurationError, match="EXAMPLE_NUMBER"):
        optional_env_int("EXAMPLE_NUMBER", 7)


def test_policy_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "FACTLEDGER_CONFIDENCE_MARGIN",
        "FACTLEDGER_PERSON_SIMILARITY",
        "FACTLEDGER_ORG_SIMILARITY",
    ):
        monkeypatch.delenv(name, raising=False)

    assert get_conflict_policy_config() == ConflictPolicyConfig(
        confidence_margin=0.0,
        person_similarity=0.85,
        organization_similarity=0.80,
    )


def test_policy_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FACTLEDGER_CONFIDENCE_MARGIN", "0.1")
    monkeypatch.setenv("FACTLEDGER_PERSON_SIMILARITY", "0.9")
    monkeypatch.setenv("FACTLEDGER_ORG_SIMILARITY", "1")

    policy = get_conflict_policy_config()

    assert policy.confidence_margin == pytest.approx(0.1)
    assert policy.person_similarity == pytest.approx(0.9)
    assert policy.organization_similarity == 1.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"confidence_margin": -0.1},
        {"confidence_margin": 1.0},
        {"person_similarity": 0.0},
        {"organization_similarity": 1.5},
    ],
)
def test_policy_rejects_out_of_range_values(overrides: dict[str, float]) -> None:
    with pytest.raises(ConfigurationError):
        ConflictPolicyConfig(**overrides)


def test_api_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FACTLEDGER_API_HOST", "0.0.0.0")
    monkeypatch.setenv("FACTLEDGER_API_PORT", "9000")
    monkeypatch.setenv("FACTLEDGER_FACT_QUERY_LIMIT", "25")

    assert get_api_config() == ApiConfig(host="0.0.0.0", port=9000, fact_query_limit=25)


def test_api_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("FACTLEDGER_API_HOST", "FACTLEDGER_API_PORT", "FACTLEDGER_FACT_QUERY_LIMIT"):
        monkeypatch.delenv(name, raising=False)

    assert get_api_config() == ApiConfig()


def test_storage_config_uses_env_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("FACTLEDGER_DATA_DIR", str(tmp_path / "ledger"))

    config = get_storage_config()

    assert config.resolve_data_dir() == (tmp_path / "ledger").resolve()


def test_storage_config_defaults_to_xdg_data_home(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("FACTLEDGER_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    config = get_storage_config()

    if config.data_dir.parent == tmp_path.resolve():
        assert config.data_dir.name == "factledger"
    else:
        pytest.skip("platform does not use XDG_DATA_HOME")


def test_database_config_prefers_database_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://ledger@localhost/ledger")

    assert get_database_config().uri == "postgresql+psycopg://ledger@localhost/ledger"


def test_database_config_falls_back_to_sqlite_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    storage = StorageConfig(data_dir=tmp_path / "data")

    uri = get_database_config(storage=storage).uri

    assert uri == f"sqlite+pysqlite:///{(tmp_path / 'data').resolve() / 'factledger.db'}"
    assert (tmp_path / "data").is_dir()


@pytest.mark.parametrize(("raw", "expected"), [("yes", True), ("OFF", False), ("1", True)])
def test_optional_env_bool(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert optional_env_bool("EXAMPLE_FLAG") is expected


def test_optional_env_bool_rejects_other_words(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "maybe")

    with pytest.raises(ConfigurationError, match="EXAMPLE_FLAG"):
        optional_env_bool("EXAMPLE_FLAG")


def test_database_echo_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("FACTLEDGER_DB_ECHO", "true")

    config = get_database_config()

    assert config.echo is True
    assert config.is_sqlite


def test_log_level_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FACTLEDGER_LOG_LEVEL", "warning")
    assert log_level_from_env() == logging.WARNING

    monkeypatch.delenv("FACTLEDGER_LOG_LEVEL")
    assert log_level_from_env() == logging.INFO

    monkeypatch.setenv("FACTLEDGER_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigurationError):
        log_level_from_env()
