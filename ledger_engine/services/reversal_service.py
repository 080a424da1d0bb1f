"""
Reversal service: corrections without mutation.

A posted entry is never edited or deleted. To undo it, a new
entry with every line's debit and credit swapped is posted
through the posting engine, and the original is marked
REVERSED with a link to its reversal. At most one reversal
exists per entry.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engine.exceptions import (
    AlreadyReversed,
    EntryNotFound,
    EntryNotPosted,
    InvalidReversalDate,
)
from ledger_engine.models.enums import AuditAction, EntryStatus
from ledger_engine.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_engine.schemas.journal import ReversalRequest
from ledger_engine.services.audit_service import AuditFact, AuditSink
from ledger_engine.services.journal_service import entry_fact
from ledger_engine.services.notification_service import (
    LedgerNotification,
    NotificationSink,
)
from ledger_engine.services.posting_service import PostingService
from ledger_engine.services.report_cache import ReportCache
from ledger_engine.services.sequence_service import SequenceService
from ledger_engine.services.unit_of_work import run_atomic

logger = logging.getLogger(__name__)


def mirror_lines(original: JournalEntry) -> list[JournalEntryLine]:
    """Copy the original's lines with debit and credit swapped."""
    return [
        JournalEntryLine(
            tenant_id=line.tenant_id,
            line_number=line.line_number,
            account_id=line.account_id,
            debit=line.credit,
            credit=line.debit,
            description=line.description,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
        )
        for line in original.lines
    ]


class ReversalService:

    def __init__(
        self,
        db: Session,
        audit_sink: AuditSink | None = None,
        notification_sink: NotificationSink | None = None,
        report_cache: ReportCache | None = None,
    ):
        self.db = db
        self.posting = PostingService(
            db,
            audit_sink=audit_sink,
            notification_sink=notification_sink,
            report_cache=report_cache,
        )
        self.sequences = SequenceService(db)

    def reverse(
        self,
        tenant_id: str,
        entry_id: int,
        request: ReversalRequest,
        actor_id: str,
    ) -> JournalEntry:
        """
        Reverse a POSTED entry and return the new reversal entry.

        The reversal is created, posted and linked to the original
        in a single transaction.
        """
        facts: list[AuditFact] = []
        notifications: list[LedgerNotification] = []

        def operation() -> JournalEntry:
            facts.clear()
            notifications.clear()
            original = self.db.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.id == entry_id,
                    JournalEntry.tenant_id == tenant_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if not original:
                raise EntryNotFound(entry_id)
            if original.reversed_by_entry_id is not None:
                raise AlreadyReversed(
                    original.entry_number, original.reversed_by_entry_id
                )
            if original.status != EntryStatus.POSTED:
                raise EntryNotPosted(original.entry_number, original.status)

            reversal_date = self._reversal_date(original, request.date)
            sequence_number, entry_number = self.sequences.next_entry_number(
                tenant_id
            )
            reversal = JournalEntry(
                tenant_id=tenant_id,
                entry_number=entry_number,
                sequence_number=sequence_number,
                date=reversal_date,
                description=(
                    f"Reversal of {original.entry_number}: {request.reason}"
                )[:255],
                reference=original.entry_number,
                cash_flow_activity=original.cash_flow_activity,
                status=EntryStatus.DRAFT,
                created_by=actor_id,
                original_entry_id=original.id,
                lines=mirror_lines(original),
            )
            self.db.add(reversal)
            self.db.flush()

            self.posting.apply(reversal, actor_id, require_active=False)

            original.transition_to(EntryStatus.REVERSED)
            original.reversed_by_entry_id = reversal.id
            original.reversed_at = datetime.utcnow()
            original.reversal_reason = request.reason
            self.db.flush()

            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_POSTED, reversal, actor_id,
                total_debit=reversal.total_debit,
                total_credit=reversal.total_credit,
                original_entry_id=original.id,
            ))
            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_REVERSED, original, actor_id,
                reversal_entry_id=reversal.id,
                reversal_entry_number=reversal.entry_number,
                reason=request.reason,
            ))
            notifications.append(LedgerNotification(
                event="journal_entry.reversed",
                tenant_id=tenant_id,
                entry_id=original.id,
                entry_number=original.entry_number,
                payload={
                    "reversal_entry_id": reversal.id,
                    "reversal_entry_number": reversal.entry_number,
                    "reason": request.reason,
                },
            ))
            return reversal

        reversal = run_atomic(self.db, operation, name="reverse_entry")
        self.posting.after_commit(tenant_id, facts, notifications)
        logger.info(
            "Reversed %s with %s for tenant %s",
            notifications[0].entry_number,
            notifications[0].payload["reversal_entry_number"],
            tenant_id,
        )
        return reversal

    @staticmethod
    def _reversal_date(original: JournalEntry, requested: date | None) -> date:
        """
        Today by default, or the caller's date if not before the original.

        A future-dated original is reversed on its own date.
        """
        if requested is not None:
            if requested < original.date:
                raise InvalidReversalDate(requested, original.date)
            return requested
        return max(date.today(), original.date)
