import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from classplanner.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


@pytest.fixture()
def blank_engine(monkeypatch):
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    monkeypatch.setattr(bootstrap, "engine", engine)
    yield engine
    engine.dispose()


def test_runtime_schema_bootstrap_creates_required_columns(blank_engine):
    bootstrap.ensure_runtime_schema()

    inspector = inspect(blank_engine)
    for table_name, required in bootstrap.REQUIRED_COLUMNS.items():
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        assert required <= existing, table_name


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch, blank_engine):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed"):
        bootstrap.ensure_runtime_schema()


def test_runtime_schema_bootstrap_reports_missing_tables(monkeypatch, blank_engine):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)

    with pytest.raises(RuntimeError) as exc_info:
        bootstrap.ensure_runtime_schema()
    assert "missing required tables" in str(exc_info.value.__cause__).lower()
