"""
Tests for the PostingService.

Tests cover:
- Posting a balanced draft moves balances and stamps the entry
- Unbalanced, non-draft and unknown entries are rejected atomically
- The balance invariant over randomly generated line sets
- Audit facts, notifications and cache invalidation after commit
"""

import random
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from ledger_engine.exceptions import (
    ConcurrencyConflict,
    EntryNotDraft,
    EntryNotFound,
    UnbalancedEntry,
)
from ledger_engine.models.account import Account
from ledger_engine.models.enums import AccountType, EntryStatus
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.audit_service import AuditFact
from ledger_engine.services.journal_service import JournalService
from ledger_engine.services.notification_service import LedgerNotification
from ledger_engine.services.posting_service import PostingService
from ledger_engine.services.report_cache import ReportCache
from ledger_engine.services.report_service import ReportService
from ledger_engine.services.unit_of_work import run_atomic


class RecordingAuditSink:
    def __init__(self):
        self.facts: list[AuditFact] = []

    def record(self, fact):
        self.facts.append(fact)


class RecordingNotificationSink:
    def __init__(self):
        self.sent: list[LedgerNotification] = []

    def send(self, notification):
        self.sent.append(notification)


class BrokenSink:
    def record(self, fact):
        raise RuntimeError("audit store down")

    def send(self, notification):
        raise RuntimeError("broker down")


def balance_of(db, account_id):
    return AccountService(db).get_account("acme", account_id).balance


# --- Scenarios ---

class TestPostingScenarios:

    def test_cash_sale_posts_to_both_accounts(
        self, db_session, make_account, make_draft
    ):
        cash = make_account(db_session, "1000", "Cash", AccountType.ASSET)
        sales = make_account(db_session, "4000", "Sales", AccountType.REVENUE)
        entry_id = make_draft(
            db_session,
            [(cash, "500.00", 0), (sales, 0, "500.00")],
            entry_date=date(2024, 1, 15),
        )

        PostingService(db_session).post("acme", entry_id, "alice")

        accounts = AccountService(db_session)
        assert accounts.get_balance("acme", cash).balance == Decimal("500.00")
        assert accounts.get_balance("acme", sales).balance == Decimal("-500.00")
        assert accounts.get_balance("acme", sales).natural_balance == Decimal("500.00")

        statement = ReportService(db_session).income_statement(
            "acme", date(2024, 1, 1), date(2024, 1, 31)
        )
        assert statement.total_revenue == Decimal("500.00")

    def test_unbalanced_entry_leaves_balances_unchanged(
        self, db_session, make_account, make_draft
    ):
        cash = make_account(db_session, "1000", "Cash", AccountType.ASSET)
        sales = make_account(db_session, "4000", "Sales", AccountType.REVENUE)
        entry_id = make_draft(db_session, [(cash, "500.00", 0), (sales, 0, "400.00")])

        with pytest.raises(UnbalancedEntry) as exc_info:
            PostingService(db_session).post("acme", entry_id, "alice")

        assert exc_info.value.debit == Decimal("500.00")
        assert exc_info.value.credit == Decimal("400.00")
        assert balance_of(db_session, cash) == Decimal("0")
        assert balance_of(db_session, sales) == Decimal("0")
        entry = JournalService(db_session).get_entry("acme", entry_id)
        assert entry.status == EntryStatus.DRAFT


class TestPost:

    def test_post_stamps_entry(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        entry = PostingService(db_session).post("acme", entry_id, "bob")

        assert entry.status == EntryStatus.POSTED
        assert entry.posted_by == "bob"
        assert entry.posted_at is not None

    def test_cannot_post_twice(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        service = PostingService(db_session)
        service.post("acme", entry_id, "alice")

        with pytest.raises(EntryNotDraft):
            service.post("acme", entry_id, "alice")
        assert balance_of(db_session, chart["cash"]) == Decimal("100")

    def test_unknown_entry(self, db_session, chart):
        with pytest.raises(EntryNotFound):
            PostingService(db_session).post("acme", 12345, "alice")

    def test_entry_of_other_tenant_is_not_found(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        with pytest.raises(EntryNotFound):
            PostingService(db_session).post("globex", entry_id, "alice")

    def test_same_account_on_several_lines(self, db_session, chart, make_draft):
        entry_id = make_draft(db_session, [
            (chart["cash"], 60, 0),
            (chart["cash"], 40, 0),
            (chart["revenue"], 0, 100),
        ])
        PostingService(db_session).post("acme", entry_id, "alice")
        assert balance_of(db_session, chart["cash"]) == Decimal("100")

    def test_sub_cent_difference_is_unbalanced(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], "100.00", 0), (chart["revenue"], 0, "99.99")]
        )
        with pytest.raises(UnbalancedEntry):
            PostingService(db_session).post("acme", entry_id, "alice")


# --- Balance invariant over random line sets ---

def random_lines(rng, account_ids, balanced):
    """Random debit/credit lines; the last line balances unless told not to."""
    lines = []
    net = Decimal("0")
    for _ in range(rng.randint(1, 5)):
        amount = Decimal(rng.randint(1, 1_000_000)) / 100
        account_id = rng.choice(account_ids)
        if rng.random() < 0.5:
            lines.append((account_id, amount, 0))
            net += amount
        else:
            lines.append((account_id, 0, amount))
            net -= amount

    if net == 0:
        net = Decimal("0.01")
        lines.append((rng.choice(account_ids), net, 0))
    account_id = rng.choice(account_ids)
    if net < 0:
        lines.append((account_id, -net, 0))
    else:
        lines.append((account_id, 0, net))
    if not balanced:
        lines.append((rng.choice(account_ids), Decimal(rng.randint(1, 500)) / 100, 0))
    return lines


class TestBalanceInvariant:

    @pytest.mark.parametrize("seed", range(8))
    def test_random_balanced_entries_keep_ledger_consistent(
        self, db_session, chart, make_draft, seed
    ):
        rng = random.Random(seed)
        account_ids = list(chart.values())
        service = PostingService(db_session)
        expected = {account_id: Decimal("0") for account_id in account_ids}

        for _ in range(5):
            lines = random_lines(rng, account_ids, balanced=True)
            entry_id = make_draft(db_session, lines)
            service.post("acme", entry_id, "alice")
            for account_id, debit, credit in lines:
                expected[account_id] += Decimal(debit) - Decimal(credit)

        for account_id, amount in expected.items():
            assert balance_of(db_session, account_id) == amount

        total = sum(
            (a.balance for a in AccountService(db_session).list_accounts("acme")),
            Decimal("0"),
        )
        assert total == Decimal("0")
        assert ReportService(db_session).check_integrity("acme").is_balanced

    @pytest.mark.parametrize("seed", range(8))
    def test_random_unbalanced_entries_are_rejected(
        self, db_session, chart, make_draft, seed
    ):
        rng = random.Random(1000 + seed)
        account_ids = list(chart.values())
        entry_id = make_draft(
            db_session, random_lines(rng, account_ids, balanced=False)
        )

        with pytest.raises(UnbalancedEntry):
            PostingService(db_session).post("acme", entry_id, "alice")

        for account_id in account_ids:
            assert balance_of(db_session, account_id) == Decimal("0")


# --- Side effects after commit ---

class TestAfterCommit:

    def test_audit_and_notification_emitted(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        audit = RecordingAuditSink()
        notifications = RecordingNotificationSink()

        PostingService(
            db_session, audit_sink=audit, notification_sink=notifications
        ).post("acme", entry_id, "alice")

        assert [f.action.value for f in audit.facts] == ["JOURNAL_ENTRY_POSTED"]
        assert audit.facts[0].entity_id == str(entry_id)
        assert audit.facts[0].details["entry_number"] == "JE000001"
        assert [n.event for n in notifications.sent] == ["journal_entry.posted"]

    def test_nothing_emitted_on_failure(self, db_session, chart, make_draft):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 50)]
        )
        audit = RecordingAuditSink()
        notifications = RecordingNotificationSink()

        with pytest.raises(UnbalancedEntry):
            PostingService(
                db_session, audit_sink=audit, notification_sink=notifications
            ).post("acme", entry_id, "alice")

        assert audit.facts == []
        assert notifications.sent == []

    def test_failing_sinks_do_not_undo_the_posting(
        self, db_session, chart, make_draft
    ):
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )
        sink = BrokenSink()

        PostingService(
            db_session, audit_sink=sink, notification_sink=sink
        ).post("acme", entry_id, "alice")

        assert balance_of(db_session, chart["cash"]) == Decimal("100")

    def test_posting_invalidates_tenant_cache(self, db_session, chart, make_draft):
        cache = ReportCache()
        cache.store("acme", ("trial_balance",), "stale", cache.generation("acme"))
        cache.store("globex", ("trial_balance",), "other", cache.generation("globex"))
        entry_id = make_draft(
            db_session, [(chart["cash"], 100, 0), (chart["revenue"], 0, 100)]
        )

        PostingService(db_session, report_cache=cache).post("acme", entry_id, "alice")

        assert cache.get("acme", ("trial_balance",)) is None
        assert cache.get("globex", ("trial_balance",)) == "other"


class TestRunAtomic:

    def test_contention_is_retried_then_surfaced(self, db_session, chart):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(ConcurrencyConflict):
            run_atomic(
                db_session, always_stale, name="test_op",
                max_attempts=3, backoff_seconds=0,
            )
        assert len(calls) == 3

    def test_retry_succeeds_after_transient_failure(self, db_session, chart):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise StaleDataError("version mismatch")
            account = db_session.get(Account, chart["cash"])
            return account.account_number

        result = run_atomic(
            db_session, flaky, name="test_op", max_attempts=3, backoff_seconds=0
        )
        assert result == "1000"
        assert len(attempts) == 2

    def test_other_errors_are_not_retried(self, db_session):
        calls = []

        def broken():
            calls.append(1)
            raise KeyError("boom")

        with pytest.raises(KeyError):
            run_atomic(db_session, broken, name="test_op", max_attempts=3)
        assert len(calls) == 1
