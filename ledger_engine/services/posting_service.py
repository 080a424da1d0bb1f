"""
Posting service: the only writer of account balances.

Posting a draft:
1. Recompute the entry totals from its lines
2. Enforce the balance rule (debits == credits, exactly)
3. Lock every touched account and add debit - credit to it
4. Move the entry to POSTED and stamp who/when
5. Commit all of it as one transaction

If any step fails, nothing is written. Contention on the
account rows is retried a few times before giving up with
ConcurrencyConflict.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engine.exceptions import EntryNotFound, UnbalancedEntry
from ledger_engine.models.enums import AuditAction, EntryStatus
from ledger_engine.models.journal_entry import JournalEntry
from ledger_engine.money import to_money
from ledger_engine.services.audit_service import (
    AuditFact,
    AuditSink,
    LoggingAuditSink,
    emit_audit,
)
from ledger_engine.services.journal_service import (
    entry_fact,
    load_usable_accounts,
)
from ledger_engine.services.notification_service import (
    LedgerNotification,
    NotificationSink,
    notify,
)
from ledger_engine.services.report_cache import ReportCache
from ledger_engine.services.unit_of_work import run_atomic

logger = logging.getLogger(__name__)


class PostingService:
    """
    Applies journal entries to account balances.

    The session is used for one unit of work per call; the
    service commits or rolls back itself.
    """

    def __init__(
        self,
        db: Session,
        audit_sink: AuditSink | None = None,
        notification_sink: NotificationSink | None = None,
        report_cache: ReportCache | None = None,
    ):
        self.db = db
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.notification_sink = notification_sink
        self.report_cache = report_cache

    def post(self, tenant_id: str, entry_id: int, actor_id: str) -> JournalEntry:
        """
        Post a DRAFT entry.

        Raises EntryNotDraft, AccountNotFound, AccountInactive or
        UnbalancedEntry with no state change; ConcurrencyConflict
        if contention outlasts the retry budget.
        """
        facts: list[AuditFact] = []
        notifications: list[LedgerNotification] = []

        def operation() -> JournalEntry:
            facts.clear()
            notifications.clear()
            entry = self.db.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.id == entry_id,
                    JournalEntry.tenant_id == tenant_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if not entry:
                raise EntryNotFound(entry_id)
            entry.ensure_draft()

            self.apply(entry, actor_id)

            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_POSTED, entry, actor_id,
                total_debit=entry.total_debit,
                total_credit=entry.total_credit,
            ))
            notifications.append(LedgerNotification(
                event="journal_entry.posted",
                tenant_id=tenant_id,
                entry_id=entry.id,
                entry_number=entry.entry_number,
                payload={"amount": str(entry.total_debit), "posted_by": actor_id},
            ))
            return entry

        entry = run_atomic(self.db, operation, name="post_entry")
        self.after_commit(tenant_id, facts, notifications)
        logger.info(
            "Posted %s for tenant %s",
            notifications[0].entry_number, tenant_id,
        )
        return entry

    def apply(
        self, entry: JournalEntry, actor_id: str, *, require_active: bool = True
    ) -> None:
        """
        Validate and apply a DRAFT entry inside the caller's transaction.

        Does not commit. The reversal engine calls this directly so
        the reversal and the stamp on the original commit together.
        It passes require_active=False so an entry stays reversible
        after one of its accounts is deactivated.
        """
        entry.recompute_totals()
        total_debit = to_money(entry.total_debit)
        total_credit = to_money(entry.total_credit)
        if total_debit != total_credit:
            raise UnbalancedEntry(debit=total_debit, credit=total_credit)

        deltas: dict[int, Decimal] = defaultdict(Decimal)
        for line in entry.lines:
            deltas[line.account_id] += line.debit - line.credit

        accounts = load_usable_accounts(
            self.db, entry.tenant_id, set(deltas),
            lock=True, require_active=require_active,
        )
        for account_id in sorted(deltas):
            account = accounts[account_id]
            account.balance = account.balance + deltas[account_id]

        entry.transition_to(EntryStatus.POSTED)
        entry.posted_by = actor_id
        entry.posted_at = datetime.utcnow()
        self.db.flush()

    def after_commit(
        self,
        tenant_id: str,
        facts: list[AuditFact],
        notifications: list[LedgerNotification],
    ) -> None:
        """Invalidate cached reports, then fire audit and notifications."""
        if self.report_cache is not None:
            self.report_cache.invalidate(tenant_id)
        for fact in facts:
            emit_audit(self.audit_sink, fact)
        for notification in notifications:
            notify(self.notification_sink, notification)
