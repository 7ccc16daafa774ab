"""
Tests for scripts/run_worker.py -- the worker entry point.

Runs ``main()`` in-process against a SQLite file database so a job
submitted in one session is picked up by the worker's own sessions.
"""

import pytest

from pfm_batch.domain.types import BatchJobStatus, RunRequest
from pfm_batch.orchestrator import BatchOrchestrator
from pfm_kernel.db.engine import get_session_factory, reset_engine
from pfm_kernel.logging_config import reset_logging
from pfm_kernel.models.journal import TransactionJournal
from scripts.run_worker import main

from tests.factories import make_account, make_journal, make_rule, make_rule_group, make_user


@pytest.fixture(autouse=True)
def _isolated(monkeypatch):
    for var in ("PFM_DATABASE_URL", "PFM_LOG_LEVEL", "PFM_WORKER_TICK_SECONDS", "PFM_WORKER_BATCH_SIZE"):
        monkeypatch.delenv(var, raising=False)
    yield
    reset_engine()
    reset_logging()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "pfm.yaml"
    path.write_text(
        f"database:\n  url: sqlite:///{tmp_path / 'pfm.db'}\n"
        "logging:\n  level: WARNING\n"
        "worker:\n  batch_size: 5\n"
    )
    return path


class TestMain:
    def test_once_with_empty_queue(self, config_path):
        assert main(["--config", str(config_path), "--once", "--create-tables"]) == 0

    def test_once_runs_pending_rule_job(self, config_path):
        assert main(["--config", str(config_path), "--once", "--create-tables"]) == 0

        session = get_session_factory()()
        try:
            user = make_user(session)
            checking = make_account(user, "Checking", session=session)
            shop = make_account(user, "Corner shop", session=session)
            journal = make_journal(user, "Grocery run", source=checking, destination=shop, session=session)
            group = make_rule_group(user, session=session)
            make_rule(group, "food", [("description_contains", "grocery")], [("set_category", "Food")],
                      session=session)
            job = BatchOrchestrator.from_session(session).submit_rule_group_run(
                RunRequest(rule_group_id=group.id, user_id=user.id),
            )
            session.commit()
        finally:
            session.close()

        assert main(["--config", str(config_path), "--once"]) == 0

        session = get_session_factory()()
        try:
            executor = BatchOrchestrator.from_session(session).create_executor()
            assert executor.get_job(job.job_id).status == BatchJobStatus.COMPLETED
            assert session.get(TransactionJournal, journal.id).category_name == "Food"
        finally:
            session.close()

    def test_bad_settings_return_error(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("worker:\n  batch_size: 0\n")

        assert main(["--config", str(path), "--once"]) == 1
        assert "worker.batch_size" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.yaml"), "--once"]) == 1
