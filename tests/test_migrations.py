"""Run the schema migration against a throwaway SQLite database."""

import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

MIGRATION_PATH = (
    Path(__file__).parent.parent
    / "migrations"
    / "versions"
    / "20261017_create_sites_and_blocked_agents.py"
)


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("create_sites_and_blocked_agents", MIGRATION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine():
    engine = sa.create_engine("sqlite://")
    yield engine
    engine.dispose()


def _run(engine, step):
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            step()


def test_upgrade_creates_schema(migration, engine):
    _run(engine, migration.upgrade)

    inspector = sa.inspect(engine)
    assert set(inspector.get_table_names()) == {"sites", "blocked_agents"}

    site_columns = {c["name"] for c in inspector.get_columns("sites")}
    assert site_columns == {"id", "url", "rank"}
    assert any(u["column_names"] == ["url"] for u in inspector.get_unique_constraints("sites"))

    index_names = {i["name"] for i in inspector.get_indexes("blocked_agents")}
    assert {"ix_blocked_agents_user_agent", "ix_blocked_agents_site_id"} <= index_names

    (fk,) = inspector.get_foreign_keys("blocked_agents")
    assert fk["referred_table"] == "sites"
    assert fk["options"].get("ondelete") == "CASCADE"


def test_downgrade_drops_schema(migration, engine):
    _run(engine, migration.upgrade)
    _run(engine, migration.downgrade)

    assert sa.inspect(engine).get_table_names() == []


def test_migration_matches_models(migration, engine):
    from models import BlockedAgent, Site

    _run(engine, migration.upgrade)
    inspector = sa.inspect(engine)

    for model in (Site, BlockedAgent):
        migrated = {c["name"] for c in inspector.get_columns(model.__tablename__)}
        assert migrated == set(model.__table__.columns.keys())
