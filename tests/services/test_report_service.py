"""
Tests for the ReportService and the report cache.

The `january` fixture books one month of activity for a small
business; every expected figure below is derived from it:

    Jan 02  cash 10,000 / capital 10,000     owner investment
    Jan 03  cash  5,000 / loan     5,000     bank loan
    Jan 05  equipment 3,000 / cash 3,000     equipment purchase
    Jan 10  cash  2,000 / revenue  2,000     cash sale
    Jan 20  rent    800 / cash       800     rent
    Jan 25  receivables 700 / revenue 700    sale on credit
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from ledger_engine.exceptions import (
    AccountNotFound,
    InvalidDateRange,
    LedgerIntegrityError,
)
from ledger_engine.models.account import Account
from ledger_engine.models.enums import AccountType, CashFlowActivity
from ledger_engine.models.journal_entry import JournalEntryLine
from ledger_engine.schemas.report import TrialBalance
from ledger_engine.services.cash_flow import CashFlowPolicy
from ledger_engine.services.journal_service import JournalService
from ledger_engine.services.posting_service import PostingService
from ledger_engine.services.report_cache import CachedReportService, ReportCache
from ledger_engine.services.report_service import ReportService

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


@pytest.fixture
def january(db_session, chart, make_draft):
    c = chart
    posting = PostingService(db_session)
    bookings = [
        (date(2024, 1, 2), "Owner investment", [(c["cash"], 10000, 0), (c["capital"], 0, 10000)]),
        (date(2024, 1, 3), "Bank loan", [(c["cash"], 5000, 0), (c["loan"], 0, 5000)]),
        (date(2024, 1, 5), "Equipment", [(c["equipment"], 3000, 0), (c["cash"], 0, 3000)]),
        (date(2024, 1, 10), "Cash sale", [(c["cash"], 2000, 0), (c["revenue"], 0, 2000)]),
        (date(2024, 1, 20), "Rent", [(c["rent"], 800, 0), (c["cash"], 0, 800)]),
        (date(2024, 1, 25), "Credit sale", [(c["receivables"], 700, 0), (c["revenue"], 0, 700)]),
    ]
    ids = []
    for entry_date, description, lines in bookings:
        entry_id = make_draft(db_session, lines, entry_date=entry_date, description=description)
        posting.post("acme", entry_id, "alice")
        ids.append(entry_id)

    # Neither a draft nor a cancelled entry may show up anywhere
    make_draft(
        db_session, [(c["cash"], 999, 0), (c["revenue"], 0, 999)],
        entry_date=date(2024, 1, 15),
    )
    cancelled = make_draft(
        db_session, [(c["cash"], 111, 0), (c["revenue"], 0, 111)],
        entry_date=date(2024, 1, 16),
    )
    JournalService(db_session).cancel_draft("acme", cancelled, "alice")
    return ids


class TestTrialBalance:

    def test_rows_and_totals(self, db_session, chart, january):
        report = ReportService(db_session).trial_balance("acme", JAN_31)

        rows = {r.account_number: (r.debit, r.credit) for r in report.rows}
        assert rows == {
            "1000": (Decimal("13200.00"), Decimal("0.00")),
            "1100": (Decimal("700.00"), Decimal("0.00")),
            "1500": (Decimal("3000.00"), Decimal("0.00")),
            "2500": (Decimal("0.00"), Decimal("5000.00")),
            "3000": (Decimal("0.00"), Decimal("10000.00")),
            "4000": (Decimal("0.00"), Decimal("2700.00")),
            "5000": (Decimal("800.00"), Decimal("0.00")),
        }
        assert report.total_debit == Decimal("17700.00")
        assert report.total_credit == Decimal("17700.00")
        assert report.is_balanced is True

    def test_zero_balance_accounts_omitted(self, db_session, january):
        report = ReportService(db_session).trial_balance("acme", JAN_31)
        assert "2000" not in {r.account_number for r in report.rows}

    def test_as_of_replays_history(self, db_session, january):
        report = ReportService(db_session).trial_balance("acme", date(2024, 1, 4))
        assert report.total_debit == Decimal("15000.00")

    def test_idempotent(self, db_session, january):
        reports = ReportService(db_session)
        first = reports.trial_balance("acme", JAN_31)
        second = reports.trial_balance("acme", JAN_31)
        assert first == second

    def test_negative_asset_goes_to_credit_column(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["rent"], 50, 0), (chart["cash"], 0, 50)]
        )
        PostingService(db_session).post("acme", entry_id, "alice")

        report = ReportService(db_session).trial_balance("acme", JAN_31)
        cash = next(r for r in report.rows if r.account_number == "1000")
        assert cash.debit == Decimal("0.00")
        assert cash.credit == Decimal("50.00")

    def test_tampered_line_raises_integrity_error(self, db_session, chart, january):
        db_session.execute(
            update(JournalEntryLine)
            .where(JournalEntryLine.entry_id == january[0])
            .where(JournalEntryLine.debit > 0)
            .values(debit=Decimal("9999"))
        )
        db_session.commit()

        with pytest.raises(LedgerIntegrityError):
            ReportService(db_session).trial_balance("acme", JAN_31)

    def test_other_tenant_is_empty(self, db_session, january):
        report = ReportService(db_session).trial_balance("globex", JAN_31)
        assert report.rows == []
        assert report.total_debit == Decimal("0")


class TestIncomeStatement:

    def test_revenue_expense_and_net_income(self, db_session, january):
        report = ReportService(db_session).income_statement("acme", JAN_1, JAN_31)

        assert report.total_revenue == Decimal("2700.00")
        assert report.total_expense == Decimal("800.00")
        assert report.net_income == Decimal("1900.00")
        assert [l.account_number for l in report.revenue.lines] == ["4000"]
        assert [l.account_number for l in report.expenses.lines] == ["5000"]

    def test_period_boundaries_are_inclusive(self, db_session, january):
        report = ReportService(db_session).income_statement(
            "acme", date(2024, 1, 10), date(2024, 1, 20)
        )
        assert report.total_revenue == Decimal("2000.00")
        assert report.total_expense == Decimal("800.00")

    def test_inverted_range_rejected(self, db_session):
        with pytest.raises(InvalidDateRange):
            ReportService(db_session).income_statement("acme", JAN_31, JAN_1)


class TestBalanceSheet:

    def test_balances_with_retained_earnings(self, db_session, january):
        report = ReportService(db_session).balance_sheet("acme", JAN_31)

        assert report.total_assets == Decimal("16900.00")
        assert report.total_liabilities == Decimal("5000.00")
        assert report.retained_earnings == Decimal("1900.00")
        assert report.total_equity == Decimal("11900.00")
        assert report.balance_check is True
        assert report.equity.lines[-1].account_name == "Retained earnings"

    def test_no_retained_earnings_line_without_income(
        self, db_session, chart, make_draft
    ):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["capital"], 0, 100)]
        )
        PostingService(db_session).post("acme", entry_id, "alice")

        report = ReportService(db_session).balance_sheet("acme", JAN_31)
        assert report.retained_earnings == Decimal("0")
        assert [l.account_number for l in report.equity.lines] == ["3000"]
        assert report.balance_check is True


class TestCashFlowStatement:

    def test_classification_by_counterpart(self, db_session, january):
        report = ReportService(db_session).cash_flow_statement("acme", JAN_1, JAN_31)

        assert report.opening_cash == Decimal("0.00")
        assert report.operating.total == Decimal("1200.00")
        assert report.investing.total == Decimal("-3000.00")
        assert report.financing.total == Decimal("15000.00")
        assert report.net_cash_flow == Decimal("13200.00")
        assert report.closing_cash == Decimal("13200.00")
        assert [i.description for i in report.operating.items] == ["Cash sale", "Rent"]

    def test_opening_cash_carries_forward(self, db_session, january):
        report = ReportService(db_session).cash_flow_statement(
            "acme", date(2024, 2, 1), date(2024, 2, 29)
        )
        assert report.opening_cash == Decimal("13200.00")
        assert report.net_cash_flow == Decimal("0.00")
        assert report.closing_cash == Decimal("13200.00")

    def test_explicit_tag_wins(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 300, 0), (chart["revenue"], 0, 300)],
            cash_flow_activity=CashFlowActivity.INVESTING,
        )
        PostingService(db_session).post("acme", entry_id, "alice")

        report = ReportService(db_session).cash_flow_statement("acme", JAN_1, JAN_31)
        assert report.investing.total == Decimal("300.00")
        assert report.operating.items == []

    def test_transfer_between_cash_accounts_is_omitted(
        self, db_session, chart, make_account, make_draft
    ):
        bank = make_account(db_session, "1010", "Bank", AccountType.ASSET, "BANK")
        entry_id = make_draft(
            db_session, [(bank, 400, 0), (chart["cash"], 0, 400)]
        )
        PostingService(db_session).post("acme", entry_id, "alice")

        report = ReportService(db_session).cash_flow_statement("acme", JAN_1, JAN_31)
        assert report.net_cash_flow == Decimal("0.00")
        assert report.operating.items == []

    def test_custom_policy(self, db_session, chart, january):
        policy = CashFlowPolicy(
            cash_sub_types=frozenset(),
            cash_account_numbers=frozenset({"1100"}),
        )
        report = ReportService(db_session, cash_flow_policy=policy).cash_flow_statement(
            "acme", JAN_1, JAN_31
        )
        assert report.operating.total == Decimal("700.00")
        assert report.closing_cash == Decimal("700.00")


class TestGeneralLedger:

    def test_running_balance_for_cash(self, db_session, chart, january):
        report = ReportService(db_session).general_ledger(
            "acme", JAN_1, JAN_31, account_id=chart["cash"]
        )

        (cash,) = report.accounts
        assert cash.opening_balance == Decimal("0.00")
        assert [l.running_balance for l in cash.lines] == [
            Decimal("10000.00"),
            Decimal("15000.00"),
            Decimal("12000.00"),
            Decimal("14000.00"),
            Decimal("13200.00"),
        ]
        assert cash.closing_balance == Decimal("13200.00")

    def test_opening_balance_from_prior_periods(self, db_session, chart, january):
        report = ReportService(db_session).general_ledger(
            "acme", date(2024, 1, 6), JAN_31, account_id=chart["cash"]
        )
        (cash,) = report.accounts
        assert cash.opening_balance == Decimal("12000.00")
        assert len(cash.lines) == 2

    def test_accounts_without_activity_are_skipped(self, db_session, january):
        report = ReportService(db_session).general_ledger("acme", JAN_1, JAN_31)
        numbers = [a.account_number for a in report.accounts]
        assert "2000" not in numbers
        assert numbers == sorted(numbers)

    def test_unknown_account(self, db_session, january):
        with pytest.raises(AccountNotFound):
            ReportService(db_session).general_ledger(
                "acme", JAN_1, JAN_31, account_id=999
            )


class TestAccountActivity:

    def test_net_movement_in_period(self, db_session, chart, january):
        reports = ReportService(db_session)
        assert reports.account_activity(
            "acme", chart["cash"], JAN_1, JAN_31
        ) == Decimal("13200.00")
        assert reports.account_activity(
            "acme", chart["cash"], date(2024, 1, 6), JAN_31
        ) == Decimal("1200.00")

    def test_account_of_other_tenant(self, db_session, chart):
        with pytest.raises(AccountNotFound):
            ReportService(db_session).account_activity(
                "globex", chart["cash"], JAN_1, JAN_31
            )


class TestCheckIntegrity:

    def test_consistent_ledger(self, db_session, january):
        report = ReportService(db_session).check_integrity("acme")
        assert report.is_balanced is True
        assert report.difference == Decimal("0")
        assert report.total_debits == Decimal("21500.00")
        assert report.mismatched_accounts == []

    def test_balance_written_outside_posting_is_detected(
        self, db_session, chart, january, caplog
    ):
        db_session.execute(
            update(Account)
            .where(Account.id == chart["cash"])
            .values(balance=Decimal("1.00"))
        )
        db_session.commit()

        with caplog.at_level("ERROR", logger="ledger_engine"):
            report = ReportService(db_session).check_integrity("acme")

        assert report.is_balanced is False
        (mismatch,) = report.mismatched_accounts
        assert mismatch.account_number == "1000"
        assert mismatch.stored_balance == Decimal("1.00")
        assert mismatch.posted_balance == Decimal("13200.00")
        assert "Integrity check failed" in caplog.text


# --- Cache ---

class CountingReports:
    """Stands in for ReportService and counts computations."""

    def __init__(self, on_compute=None):
        self.calls = 0
        self.on_compute = on_compute

    def trial_balance(self, tenant_id, as_of):
        self.calls += 1
        if self.on_compute:
            self.on_compute()
        return TrialBalance(
            tenant_id=tenant_id, as_of=as_of, rows=[],
            total_debit=Decimal("0"), total_credit=Decimal("0"), is_balanced=True,
        )

    def check_integrity(self, tenant_id):
        self.calls += 1
        return tenant_id


class TestReportCache:

    def test_hit_skips_computation(self):
        reports = CountingReports()
        cached = CachedReportService(reports, ReportCache(), enabled=True)

        cached.trial_balance("acme", JAN_31)
        cached.trial_balance("acme", JAN_31)
        assert reports.calls == 1

    def test_returns_copies(self):
        cached = CachedReportService(CountingReports(), ReportCache(), enabled=True)

        first = cached.trial_balance("acme", JAN_31)
        first.rows.append("tampered")
        assert cached.trial_balance("acme", JAN_31).rows == []

    def test_invalidation_forces_recompute(self):
        reports = CountingReports()
        cache = ReportCache()
        cached = CachedReportService(reports, cache, enabled=True)

        cached.trial_balance("acme", JAN_31)
        cache.invalidate("acme")
        cached.trial_balance("acme", JAN_31)
        assert reports.calls == 2

    def test_result_raced_by_invalidation_is_not_stored(self):
        cache = ReportCache()
        reports = CountingReports(on_compute=lambda: cache.invalidate("acme"))
        cached = CachedReportService(reports, cache, enabled=True)

        cached.trial_balance("acme", JAN_31)
        assert cache.get("acme", ("trial_balance", JAN_31)) is None

    def test_disabled_cache_always_computes(self):
        reports = CountingReports()
        cached = CachedReportService(reports, ReportCache(), enabled=False)

        cached.trial_balance("acme", JAN_31)
        cached.trial_balance("acme", JAN_31)
        assert reports.calls == 2

    def test_integrity_check_is_never_cached(self):
        reports = CountingReports()
        cached = CachedReportService(reports, ReportCache(), enabled=True)

        cached.check_integrity("acme")
        cached.check_integrity("acme")
        assert reports.calls == 2

    def test_posting_through_real_services_refreshes_report(
        self, db_session, chart, make_draft
    ):
        cache = ReportCache()
        cached = CachedReportService(ReportService(db_session), cache, enabled=True)
        assert cached.trial_balance("acme", JAN_31).rows == []

        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        PostingService(db_session, report_cache=cache).post("acme", entry_id, "alice")

        assert cached.trial_balance("acme", JAN_31).total_debit == Decimal("100.00")
