"""Run the initial migration against SQLite and compare it with the ORM models."""

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from devpulse_core.database import Base

VERSIONS_DIR = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def _load_revision(filename: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(filename.removesuffix(".py"), VERSIONS_DIR / filename)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine():
    engine = sa.create_engine("sqlite://")
    yield engine
    engine.dispose()


def test_initial_revision_metadata() -> None:
    revision = _load_revision("001_initial_health_schema.py")

    assert revision.revision == "001"
    assert revision.down_revision is None


def test_upgrade_creates_model_tables(engine) -> None:
    import devpulse_core.models  # noqa: F401

    revision = _load_revision("001_initial_health_schema.py")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            revision.upgrade()

    inspector = sa.inspect(engine)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)

    for name, table in Base.metadata.tables.items():
        migrated = {column["name"] for column in inspector.get_columns(name)}
        assert migrated == {column.name for column in table.columns}, name

    constraints = {uc["name"]: uc["column_names"] for uc in inspector.get_unique_constraints("alerts")}
    assert constraints["uq_alert_dedup"] == ["workspace_id", "dedup_key", "dedup_bucket"]
    indexes = {index["name"] for index in inspector.get_indexes("alerts")}
    assert {"ix_alerts_workspace_created", "ix_alerts_escalated_alert_id"} <= indexes
    snapshot_indexes = {index["name"] for index in inspector.get_indexes("health_snapshots")}
    assert "ix_health_snapshots_workspace_taken" in snapshot_indexes


def test_downgrade_drops_everything(engine) -> None:
    revision = _load_revision("001_initial_health_schema.py")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            revision.upgrade()
            revision.downgrade()

    assert sa.inspect(engine).get_table_names() == []
