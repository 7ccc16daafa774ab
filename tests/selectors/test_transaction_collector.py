"""
Tests for pfm_kernel.selectors.transaction_collector.TransactionCollector.
"""

from datetime import date

import pytest

from pfm_kernel.models.account import AccountType
from pfm_kernel.selectors.transaction_collector import TransactionCollector
from pfm_rules.ports import TransactionCollector as TransactionCollectorPort

from tests.factories import make_account, make_journal, make_user


@pytest.fixture
def user(db_session):
    return make_user(db_session)


@pytest.fixture
def accounts(db_session, user):
    return {
        "checking": make_account(user, "Checking", session=db_session),
        "savings": make_account(user, "Savings", session=db_session),
        "shop": make_account(user, "Shop", AccountType.EXPENSE, session=db_session),
    }


def _journal(db_session, user, description, source, destination, day):
    return make_journal(
        user,
        description,
        source=source,
        destination=destination,
        journal_date=day,
        session=db_session,
    )


class TestCollect:
    def test_satisfies_port(self, db_session):
        assert isinstance(TransactionCollector(db_session), TransactionCollectorPort)

    def test_user_scoped(self, db_session, user, accounts):
        other = make_user(db_session)
        other_checking = make_account(other, "Checking", session=db_session)
        other_shop = make_account(other, "Shop", AccountType.EXPENSE, session=db_session)
        mine = _journal(db_session, user, "mine", accounts["checking"], accounts["shop"], date(2024, 1, 1))
        _journal(db_session, other, "theirs", other_checking, other_shop, date(2024, 1, 1))

        journals = TransactionCollector(db_session).collect(user.id)

        assert [j.id for j in journals] == [mine.id]

    def test_date_descending_order(self, db_session, user, accounts):
        for day in (5, 20, 12):
            _journal(db_session, user, f"d{day}", accounts["checking"], accounts["shop"], date(2024, 3, day))

        journals = TransactionCollector(db_session).collect(user.id)

        assert [j.description for j in journals] == ["d20", "d12", "d5"]

    def test_date_range_is_inclusive(self, db_session, user, accounts):
        for day in (1, 10, 20, 31):
            _journal(db_session, user, f"d{day}", accounts["checking"], accounts["shop"], date(2024, 1, day))

        journals = TransactionCollector(db_session).collect(
            user.id, start_date=date(2024, 1, 10), end_date=date(2024, 1, 20),
        )

        assert [j.description for j in journals] == ["d20", "d10"]

    def test_open_ended_bounds(self, db_session, user, accounts):
        for day in (1, 15, 31):
            _journal(db_session, user, f"d{day}", accounts["checking"], accounts["shop"], date(2024, 1, day))
        collector = TransactionCollector(db_session)

        since = collector.collect(user.id, start_date=date(2024, 1, 15))
        until = collector.collect(user.id, end_date=date(2024, 1, 15))

        assert [j.description for j in since] == ["d31", "d15"]
        assert [j.description for j in until] == ["d15", "d1"]

    def test_account_filter_matches_any_posting(self, db_session, user, accounts):
        on_checking = _journal(
            db_session, user, "on checking", accounts["checking"], accounts["shop"], date(2024, 1, 2),
        )
        _journal(db_session, user, "on savings", accounts["savings"], accounts["shop"], date(2024, 1, 3))

        journals = TransactionCollector(db_session).collect(
            user.id, account_ids=[accounts["checking"].id],
        )

        assert [j.id for j in journals] == [on_checking.id]

    def test_account_filter_excludes_journal_on_other_account(self, db_session, user, accounts):
        # A journal entirely between savings and shop never touches checking.
        _journal(db_session, user, "elsewhere", accounts["savings"], accounts["shop"], date(2024, 1, 3))

        journals = TransactionCollector(db_session).collect(
            user.id, account_ids={accounts["checking"].id},
        )

        assert journals == []

    def test_each_journal_once_with_multiple_filtered_accounts(self, db_session, user, accounts):
        transfer = _journal(
            db_session, user, "transfer", accounts["checking"], accounts["savings"], date(2024, 1, 4),
        )

        journals = TransactionCollector(db_session).collect(
            user.id, account_ids=[accounts["checking"].id, accounts["savings"].id],
        )

        assert [j.id for j in journals] == [transfer.id]

    def test_postings_are_loaded(self, db_session, user, accounts):
        _journal(db_session, user, "x", accounts["checking"], accounts["shop"], date(2024, 1, 4))
        db_session.expire_all()

        journal = TransactionCollector(db_session).collect(user.id)[0]

        assert [a.name for a in journal.source_accounts] == ["Checking"]
        assert [a.name for a in journal.destination_accounts] == ["Shop"]
