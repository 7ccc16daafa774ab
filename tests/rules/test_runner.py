"""
Tests for pfm_rules.runner -- BatchRuleGroupRunner and BatchRuleRunner.

Collaborators are in-memory doubles; the processor is the real
RuleProcessor wrapped to record every invocation, so ordering and
stop-processing behaviour are observed directly.
"""

from datetime import date
from uuid import uuid4

import pytest

from pfm_batch.domain.types import RunRequest
from pfm_kernel.exceptions import (
    RecordNotFoundError,
    RuleActionError,
    RuleBindError,
    RuleCollectionError,
    RunConfigurationError,
    TransactionCollectionError,
    UnknownTriggerError,
)
from pfm_kernel.models.account import AccountType
from pfm_rules.processor import RuleProcessor
from pfm_rules.runner import (
    BatchRuleGroupRunner,
    BatchRuleRunner,
    RuleRunSummary,
    _BatchRunner,
)

from tests.factories import (
    make_account,
    make_journal,
    make_rule,
    make_rule_group,
    make_user,
)
from tests.fakes import (
    InMemoryJournalUpdater,
    InMemoryRuleRepository,
    InMemoryTransactionCollector,
    recording_factory,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def user():
    return make_user()


@pytest.fixture
def accounts(user):
    return (
        make_account(user, "Checking"),
        make_account(user, "Market", AccountType.EXPENSE),
    )


@pytest.fixture
def group(user):
    return make_rule_group(user, "Everyday")


@pytest.fixture
def updater():
    return InMemoryJournalUpdater()


@pytest.fixture
def invocations():
    return []


def _journal(user, accounts, description, **kwargs):
    return make_journal(user, description, source=accounts[0], destination=accounts[1], **kwargs)


def _runner(journals, rules, group, updater, invocations, runner_cls=BatchRuleGroupRunner):
    collector = InMemoryTransactionCollector(journals)
    repository = InMemoryRuleRepository({group.id: list(rules)})
    runner = runner_cls(collector, repository, recording_factory(updater, invocations))
    return runner, collector, repository


# =============================================================================
# Ordering
# =============================================================================


class TestOrdering:
    def test_rules_in_order_for_every_journal_in_order(
        self, user, accounts, group, updater, invocations,
    ):
        journals = [_journal(user, accounts, d) for d in ("t1", "t2", "t3")]
        rules = [
            make_rule(group, title, [("description_is", "never")], [("add_tag", "x")], order=i)
            for i, title in enumerate(("r1", "r2", "r3"))
        ]
        runner, _, _ = _runner(journals, rules, group, updater, invocations)

        summary = runner.configure(group.id, user.id).run()

        assert invocations == [
            (rule, journal) for journal in ("t1", "t2", "t3") for rule in ("r1", "r2", "r3")
        ]
        assert summary == RuleRunSummary(journals=3, rules=3, invocations=9, matches=0, stops=0)

    def test_later_rules_see_earlier_effects(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "Grocery run")
        r1 = make_rule(group, "R1", [("description_contains", "Grocery")], [("set_category", "Food")], order=0)
        r2 = make_rule(group, "R2", [("category_is", "Food")], [("add_tag", "auto-tagged")], order=1)
        runner, _, _ = _runner([journal], [r1, r2], group, updater, invocations)

        runner.configure(group.id, user.id).run()

        assert journal.category_name == "Food"
        assert journal.tag_names == ["auto-tagged"]

    def test_swapped_order_never_tags(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "Grocery run")
        r2 = make_rule(
            group, "R2", [("category_is", "Food")], [("add_tag", "auto-tagged")],
            order=0, stop_processing=True,
        )
        r1 = make_rule(group, "R1", [("description_contains", "Grocery")], [("set_category", "Food")], order=1)
        runner, _, _ = _runner([journal], [r2, r1], group, updater, invocations)

        summary = runner.configure(group.id, user.id).run()

        assert journal.category_name == "Food"
        assert journal.tag_names == []
        assert invocations == [("R2", "Grocery run"), ("R1", "Grocery run")]
        assert summary.stops == 0


# =============================================================================
# stop_processing
# =============================================================================


class TestStopProcessing:
    def test_matched_stop_rule_skips_rest_for_that_journal_only(
        self, user, accounts, group, updater, invocations,
    ):
        journals = [_journal(user, accounts, "stop here"), _journal(user, accounts, "keep going")]
        rules = [
            make_rule(group, "r1", [("description_contains", "e")], [("append_notes", "1")], order=0),
            make_rule(
                group, "r2", [("description_contains", "stop")], [("append_notes", "2")],
                order=1, stop_processing=True,
            ),
            make_rule(group, "r3", [("description_contains", "e")], [("append_notes", "3")], order=2),
        ]
        runner, _, _ = _runner(journals, rules, group, updater, invocations)

        summary = runner.configure(group.id, user.id).run()

        assert invocations == [
            ("r1", "stop here"),
            ("r2", "stop here"),
            ("r1", "keep going"),
            ("r2", "keep going"),
            ("r3", "keep going"),
        ]
        assert journals[0].notes == "12"
        assert journals[1].notes == "13"
        assert summary.stops == 1
        assert summary.matches == 4

    def test_unmatched_stop_rule_does_not_stop(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "plain")
        rules = [
            make_rule(group, "r1", [("description_is", "other")], [("add_tag", "a")], order=0, stop_processing=True),
            make_rule(group, "r2", [("description_is", "plain")], [("add_tag", "b")], order=1),
        ]
        runner, _, _ = _runner([journal], rules, group, updater, invocations)

        runner.configure(group.id, user.id).run()

        assert journal.tag_names == ["b"]


# =============================================================================
# Empty inputs and untouched journals
# =============================================================================


class TestEmptyInputs:
    def test_no_match_leaves_journal_unmodified(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "Rent", notes="monthly")
        rules = [make_rule(group, "r1", [("description_is", "Gym")], [("set_description", "x")])]
        runner, _, _ = _runner([journal], rules, group, updater, invocations)

        runner.configure(group.id, user.id).run()

        assert journal.description == "Rent"
        assert journal.notes == "monthly"
        assert journal.category is None
        assert journal.tags == []

    def test_no_eligible_rules_touches_nothing(self, user, accounts, group, updater, invocations):
        journals = [_journal(user, accounts, f"t{i}") for i in range(5)]
        rules = [
            make_rule(group, "inactive", [], [("add_tag", "x")], active=False),
            make_rule(group, "manual", [], [("add_tag", "x")], store_journal=False),
        ]
        runner, _, _ = _runner(journals, rules, group, updater, invocations)

        summary = runner.configure(group.id, user.id).run()

        assert invocations == []
        assert summary.journals == 5
        assert summary.rules == 0
        assert all(j.tags == [] for j in journals)

    def test_group_of_another_user_applies_nothing(self, user, accounts, updater, invocations):
        owner = make_user()
        foreign_group = make_rule_group(owner, "Owner's")
        journal = _journal(user, accounts, "Rent")
        rules = [make_rule(foreign_group, "hijack", [], [("set_description", "HIJACKED")])]
        runner, _, repository = _runner([journal], rules, foreign_group, updater, invocations)

        summary = runner.configure(foreign_group.id, user.id).run()

        assert repository.calls == [("eligible_rules", foreign_group.id, user.id)]
        assert invocations == []
        assert summary.rules == 0
        assert journal.description == "Rent"

    def test_no_journals_invokes_no_processor(self, user, group, updater, invocations):
        rules = [make_rule(group, "r1", [], [("add_tag", "x")])]
        runner, _, _ = _runner([], rules, group, updater, invocations)

        summary = runner.configure(group.id, user.id).run()

        assert invocations == []
        assert summary.invocations == 0
        assert summary.rules == 1


# =============================================================================
# Configuration
# =============================================================================


class TestConfigure:
    def test_parameters_passed_to_collaborators(self, user, accounts, group, updater, invocations):
        runner, collector, repository = _runner([], [], group, updater, invocations)
        account_ids = {accounts[0].id}

        runner.configure(
            group.id, user.id, account_ids, date(2024, 1, 1), date(2024, 12, 31),
        ).run()

        assert collector.calls == [
            (user.id, (accounts[0].id,), date(2024, 1, 1), date(2024, 12, 31)),
        ]
        assert repository.calls == [("eligible_rules", group.id, user.id)]

    def test_run_before_configure_calls_nothing(self, group, updater, invocations):
        runner, collector, repository = _runner([], [], group, updater, invocations)
        with pytest.raises(RunConfigurationError, match="configure"):
            runner.run()
        assert collector.calls == []
        assert repository.calls == []

    def test_configure_from_request(self, user, accounts, group, updater, invocations):
        runner, collector, repository = _runner([], [], group, updater, invocations)
        request = RunRequest(
            rule_group_id=group.id, user_id=user.id, account_ids=(accounts[0].id,),
            start_date=date(2024, 3, 1),
        )

        runner.configure_from_request(request).run()

        assert collector.calls == [(user.id, (accounts[0].id,), date(2024, 3, 1), None)]
        assert repository.calls == [("eligible_rules", group.id, user.id)]

    def test_base_runner_is_abstract(self, updater, invocations):
        collector = InMemoryTransactionCollector()
        repository = InMemoryRuleRepository()
        with pytest.raises(TypeError):
            _BatchRunner(collector, repository, recording_factory(updater, invocations))

    def test_rule_group_required(self, user, group, updater, invocations):
        runner, _, _ = _runner([], [], group, updater, invocations)
        with pytest.raises(RunConfigurationError, match="rule_group_id"):
            runner.configure(None, user.id)

    def test_user_required(self, group, updater, invocations):
        runner, _, _ = _runner([], [], group, updater, invocations)
        with pytest.raises(RunConfigurationError, match="user_id"):
            runner.configure(group.id, None)

    def test_inverted_dates_rejected(self, user, group, updater, invocations):
        runner, _, _ = _runner([], [], group, updater, invocations)
        with pytest.raises(RunConfigurationError):
            runner.configure(group.id, user.id, (), date(2024, 2, 1), date(2024, 1, 1))

    def test_rerun_reuses_configuration(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "x")
        rules = [make_rule(group, "r1", [], [("append_notes", "+")])]
        runner, collector, _ = _runner([journal], rules, group, updater, invocations)

        runner.configure(group.id, user.id)
        runner.run()
        runner.run()

        # Re-runs are not deduplicated.
        assert journal.notes == "++"
        assert len(collector.calls) == 2


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    def test_collector_failure_wrapped(self, user, group, updater, invocations):
        collector = InMemoryTransactionCollector(fail_with=ConnectionError("db down"))
        runner = BatchRuleGroupRunner(
            collector, InMemoryRuleRepository(), recording_factory(updater, invocations),
        )
        with pytest.raises(TransactionCollectionError) as exc_info:
            runner.configure(group.id, user.id).run()
        assert exc_info.value.user_id == str(user.id)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_repository_failure_wrapped(self, user, group, updater, invocations):
        repository = InMemoryRuleRepository(fail_with=TimeoutError("slow"))
        runner = BatchRuleGroupRunner(
            InMemoryTransactionCollector(), repository, recording_factory(updater, invocations),
        )
        with pytest.raises(RuleCollectionError) as exc_info:
            runner.configure(group.id, user.id).run()
        assert exc_info.value.rule_group_id == str(group.id)

    def test_bind_failure_touches_no_journal(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "x")
        rules = [
            make_rule(group, "good", [], [("add_tag", "x")], order=0),
            make_rule(group, "bad", [("moon_phase", "full")], [("add_tag", "y")], order=1),
        ]
        runner, _, _ = _runner([journal], rules, group, updater, invocations)

        with pytest.raises(UnknownTriggerError):
            runner.configure(group.id, user.id).run()
        assert invocations == []
        assert journal.tags == []

    def test_factory_plain_exception_becomes_bind_error(self, user, group, updater):
        rule = make_rule(group, "r", [], [("add_tag", "x")])

        def broken_factory(rule):
            raise AttributeError("boom")

        runner = BatchRuleGroupRunner(
            InMemoryTransactionCollector(),
            InMemoryRuleRepository({group.id: [rule]}),
            broken_factory,
        )
        with pytest.raises(RuleBindError) as exc_info:
            runner.configure(group.id, user.id).run()
        assert exc_info.value.rule_id == str(rule.id)

    def test_action_failure_keeps_earlier_journals(self, user, accounts, group):
        class FailOnSecond(InMemoryJournalUpdater):
            def add_tag(self, journal, name):
                if journal.description == "second":
                    raise RuntimeError("tag store unavailable")
                return super().add_tag(journal, name)

        journals = [_journal(user, accounts, "first"), _journal(user, accounts, "second")]
        rules = [make_rule(group, "r", [], [("add_tag", "seen")])]
        runner = BatchRuleGroupRunner(
            InMemoryTransactionCollector(journals),
            InMemoryRuleRepository({group.id: rules}),
            RuleProcessor.factory(FailOnSecond()),
        )

        with pytest.raises(RuleActionError):
            runner.configure(group.id, user.id).run()
        assert journals[0].tag_names == ["seen"]


# =============================================================================
# Journal scope and logging
# =============================================================================


class TestScopeAndLogging:
    def test_each_journal_runs_in_its_own_scope(self, user, accounts, group, updater, invocations):
        from contextlib import contextmanager

        scopes = []

        @contextmanager
        def scope():
            scopes.append(len(invocations))
            yield

        journals = [_journal(user, accounts, "a"), _journal(user, accounts, "b")]
        rules = [make_rule(group, "r", [], [("add_tag", "x")])]
        runner = BatchRuleGroupRunner(
            InMemoryTransactionCollector(journals),
            InMemoryRuleRepository({group.id: rules}),
            recording_factory(updater, invocations),
            journal_scope=scope,
        )

        runner.configure(group.id, user.id).run()

        assert scopes == [0, 1]

    def test_run_events_logged_with_context(self, user, accounts, group, updater, invocations, captured_logs):
        journal = _journal(user, accounts, "x")
        rules = [make_rule(group, "r", [], [("add_tag", "x")])]
        runner, _, _ = _runner([journal], rules, group, updater, invocations)

        runner.configure(group.id, user.id).run()

        logs = captured_logs()
        started = next(r for r in logs if r["message"] == "rule_group_run_started")
        completed = next(r for r in logs if r["message"] == "rule_group_run_completed")
        assert started["rule_group_id"] == str(group.id)
        assert started["user_id"] == str(user.id)
        assert completed["matches"] == 1
        triggered = next(r for r in logs if r["message"] == "rule_triggered")
        assert triggered["journal_id"] == str(journal.id)


# =============================================================================
# Single rule
# =============================================================================


class TestBatchRuleRunner:
    def test_runs_one_rule_even_without_store_trigger(self, user, accounts, group, updater, invocations):
        journal = _journal(user, accounts, "Gym")
        rule = make_rule(group, "manual", [("description_is", "gym")], [("set_category", "Health")], store_journal=False)
        runner, _, repository = _runner([journal], [rule], group, updater, invocations, BatchRuleRunner)

        summary = runner.configure(rule.id, user.id).run()

        assert journal.category_name == "Health"
        assert summary.rules == 1
        assert repository.calls == [("get_rule", rule.id)]

    def test_rule_required(self, user, group, updater, invocations):
        runner, _, _ = _runner([], [], group, updater, invocations, BatchRuleRunner)
        with pytest.raises(RunConfigurationError, match="rule_id"):
            runner.configure(None, user.id)

    def test_other_users_rule_rejected(self, group, updater, invocations):
        rule = make_rule(group, "r", [], [("add_tag", "x")])
        runner, _, _ = _runner([], [rule], group, updater, invocations, BatchRuleRunner)
        with pytest.raises(RuleCollectionError, match="another user"):
            runner.configure(rule.id, uuid4()).run()

    def test_missing_rule_propagates(self, user, group, updater, invocations):
        runner, _, _ = _runner([], [], group, updater, invocations, BatchRuleRunner)
        with pytest.raises(RecordNotFoundError):
            runner.configure(uuid4(), user.id).run()
