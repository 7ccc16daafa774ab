"""Tests for pfm_kernel.db.engine -- module-level engine and sessions."""

import pytest
from sqlalchemy import inspect, select

from pfm_config.schema import AppSettings, DatabaseSettings
from pfm_kernel.db import engine as db_engine
from pfm_kernel.models.user import User


@pytest.fixture(autouse=True)
def _reset():
    db_engine.reset_engine()
    yield
    db_engine.reset_engine()


@pytest.fixture
def initialized():
    db_engine.init_engine_from_settings(AppSettings(database=DatabaseSettings(url="sqlite://")))
    db_engine.create_tables()


class TestInitialization:
    @pytest.mark.parametrize(
        "accessor",
        [db_engine.get_engine, db_engine.get_session, db_engine.get_session_factory],
    )
    def test_accessors_require_init(self, accessor):
        with pytest.raises(RuntimeError, match="not initialized"):
            accessor()

    def test_sqlite_from_settings(self, initialized):
        engine = db_engine.get_engine()
        assert engine.dialect.name == "sqlite"
        assert {"users", "transaction_journals", "rules", "batch_jobs"} <= set(
            inspect(engine).get_table_names()
        )

    def test_reinit_replaces_engine(self, initialized):
        first = db_engine.get_engine()
        db_engine.init_engine_from_url("sqlite://")
        assert db_engine.get_engine() is not first

    def test_drop_tables(self, initialized):
        db_engine.drop_tables()
        assert inspect(db_engine.get_engine()).get_table_names() == []


class TestSessionScope:
    def test_commits_on_success(self, initialized):
        with db_engine.session_scope() as session:
            session.add(User(email="a@example.com"))

        with db_engine.session_scope() as session:
            emails = session.execute(select(User.email)).scalars().all()
        assert emails == ["a@example.com"]

    def test_rolls_back_and_reraises(self, initialized):
        with pytest.raises(RuntimeError, match="abort"):
            with db_engine.session_scope() as session:
                session.add(User(email="b@example.com"))
                session.flush()
                raise RuntimeError("abort")

        with db_engine.session_scope() as session:
            assert session.execute(select(User)).scalars().all() == []
