"""
In-memory collaborators for exercising the rule engine without a database.
"""

from uuid import UUID, uuid4

from pfm_kernel.exceptions import RecordNotFoundError
from pfm_kernel.models.journal import Budget, Category, Tag
from pfm_kernel.selectors.rule_repository import is_batch_eligible
from pfm_kernel.services.journal_updater import JournalUpdater
from pfm_rules.processor import RuleProcessor


class InMemoryTransactionCollector:
    """Returns the given journals as-is and records every call."""

    def __init__(self, journals=(), fail_with: Exception | None = None):
        self.journals = list(journals)
        self.fail_with = fail_with
        self.calls: list[tuple] = []

    def collect(self, user_id, account_ids=(), start_date=None, end_date=None):
        self.calls.append((user_id, tuple(account_ids), start_date, end_date))
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.journals)


class InMemoryRuleRepository:
    """Rules keyed by group id, filtered with the production eligibility predicate."""

    def __init__(self, groups: dict | None = None, fail_with: Exception | None = None):
        self.groups = groups or {}
        self.fail_with = fail_with
        self.calls: list[tuple] = []

    def eligible_rules(self, rule_group_id, user_id):
        self.calls.append(("eligible_rules", rule_group_id, user_id))
        if self.fail_with is not None:
            raise self.fail_with
        return [
            r for r in self.groups.get(rule_group_id, []) if is_batch_eligible(r, user_id)
        ]

    def get_rule(self, rule_id):
        self.calls.append(("get_rule", rule_id))
        if self.fail_with is not None:
            raise self.fail_with
        for rules in self.groups.values():
            for rule in rules:
                if rule.id == rule_id:
                    return rule
        raise RecordNotFoundError("Rule", str(rule_id))


class InMemoryJournalUpdater(JournalUpdater):
    """JournalUpdater whose labels live in dicts instead of the session."""

    def __init__(self):
        super().__init__(session=None)
        self.categories: dict[tuple[UUID, str], Category] = {}
        self.budgets: dict[tuple[UUID, str], Budget] = {}
        self.tags: dict[tuple[UUID, str], Tag] = {}

    def _category(self, user_id, name):
        key = (user_id, name.casefold())
        if key not in self.categories:
            self.categories[key] = Category(id=uuid4(), user_id=user_id, name=name)
        return self.categories[key]

    def _budget(self, user_id, name):
        key = (user_id, name.casefold())
        if key not in self.budgets:
            self.budgets[key] = Budget(id=uuid4(), user_id=user_id, name=name)
        return self.budgets[key]

    def _tag(self, user_id, name):
        key = (user_id, name.casefold())
        if key not in self.tags:
            self.tags[key] = Tag(id=uuid4(), user_id=user_id, tag=name)
        return self.tags[key]


class RecordingProcessor(RuleProcessor):
    """RuleProcessor that logs every (rule title, journal description) it is handed."""

    def __init__(self, updater, log: list):
        super().__init__(updater)
        self._log = log

    def handle_transaction(self, journal):
        self._log.append((self.rule.title, journal.description))
        return super().handle_transaction(journal)


def recording_factory(updater, log: list):
    def make(rule):
        return RecordingProcessor(updater, log).bind(rule)

    return make
