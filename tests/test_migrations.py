import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "001_initial_schema.py"


@pytest.fixture
def migration():
    module_spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def connection():
    engine = sa.create_engine("sqlite://")
    with engine.begin() as conn:
        yield conn
    engine.dispose()


def _run(connection, step):
    context = MigrationContext.configure(connection)
    with Operations.context(context):
        step()


def test_upgrade_creates_schema(migration, connection):
    _run(connection, migration.upgrade)

    inspector = sa.inspect(connection)
    assert set(inspector.get_table_names()) == {"habits", "habit_completions"}

    columns = {c["name"] for c in inspector.get_columns("habits")}
    assert {"frequency_type", "frequency_days", "times_per_period", "is_archived"} <= columns

    uniques = inspector.get_unique_constraints("habit_completions")
    assert [u["column_names"] for u in uniques] == [["habit_id", "completed_date"]]

    indexes = {i["name"] for i in inspector.get_indexes("habit_completions")}
    assert "ix_habit_completions_completed_date" in indexes

    (fk,) = inspector.get_foreign_keys("habit_completions")
    assert fk["referred_table"] == "habits"
    assert fk["options"].get("ondelete") == "CASCADE"


def test_downgrade_drops_everything(migration, connection):
    _run(connection, migration.upgrade)
    _run(connection, migration.downgrade)

    assert sa.inspect(connection).get_table_names() == []
