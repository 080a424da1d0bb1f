"""
Journal service: the journal entry store.

Owns drafts: creation (with entry number assignment), editing,
cancellation, and reads. Drafts need not balance; the balance
rule is enforced when the posting engine posts them.
"""

import logging
import math

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, selectinload

from ledger_engine.config import get_settings
from ledger_engine.exceptions import (
    AccountInactive,
    AccountNotFound,
    EntryNotFound,
    InvalidLineShape,
    TooFewLines,
)
from ledger_engine.models.account import Account
from ledger_engine.models.enums import AuditAction, EntryStatus
from ledger_engine.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_engine.money import ZERO, to_money
from ledger_engine.schemas.journal import (
    JournalEntryCreate,
    JournalEntryUpdate,
    JournalEntryFilter,
    JournalLineCreate,
)
from ledger_engine.services.audit_service import (
    AuditFact,
    AuditSink,
    LoggingAuditSink,
    emit_audit,
)
from ledger_engine.services.sequence_service import SequenceService
from ledger_engine.services.unit_of_work import run_atomic

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "date": JournalEntry.date,
    "entry_number": JournalEntry.sequence_number,
    "amount": JournalEntry.total_debit,
}


def build_lines(
    tenant_id: str, lines: list[JournalLineCreate]
) -> list[JournalEntryLine]:
    """
    Validate line shapes and build unsaved line rows.

    Amounts are rounded to the currency minor unit. Exactly one
    of debit/credit must be non-zero on every line.
    """
    if len(lines) < 2:
        raise TooFewLines(len(lines))

    built = []
    for number, line in enumerate(lines, start=1):
        debit = to_money(line.debit)
        credit = to_money(line.credit)
        if debit > ZERO and credit > ZERO:
            raise InvalidLineShape(number, "both debit and credit are set")
        if debit == ZERO and credit == ZERO:
            raise InvalidLineShape(number, "neither debit nor credit is set")
        built.append(JournalEntryLine(
            tenant_id=tenant_id,
            line_number=number,
            account_id=line.account_id,
            debit=debit,
            credit=credit,
            description=line.description,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
        ))
    return built


def load_usable_accounts(
    db: Session,
    tenant_id: str,
    account_ids: set[int],
    *,
    lock: bool = False,
    require_active: bool = True,
) -> dict[int, Account]:
    """
    Load the accounts referenced by a set of lines.

    Raises AccountNotFound for ids missing from the tenant and
    AccountInactive for deactivated accounts unless require_active
    is False. With lock=True the rows are locked in id order, the
    order every poster uses, so two postings can never deadlock
    on each other.
    """
    stmt = (
        select(Account)
        .where(Account.tenant_id == tenant_id, Account.id.in_(account_ids))
        .order_by(Account.id)
    )
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    accounts = {a.id: a for a in db.execute(stmt).scalars().all()}

    missing = account_ids - set(accounts)
    if missing:
        raise AccountNotFound(min(missing))
    for account in accounts.values():
        if require_active and not account.is_active:
            raise AccountInactive(account.account_number)
    return accounts


def entry_fact(
    action: AuditAction,
    entry: JournalEntry,
    actor_id: str | None,
    **details,
) -> AuditFact:
    # Built inside the transaction: attributes expire on commit
    return AuditFact(
        action=action,
        entity_type="journal_entry",
        entity_id=str(entry.id),
        tenant_id=entry.tenant_id,
        actor_id=actor_id,
        details={"entry_number": entry.entry_number, **details},
    )


class JournalService:
    """
    Draft lifecycle and journal reads.

    Every write is one atomic unit of work; the service commits
    it. Audit facts are emitted after the commit.
    """

    def __init__(self, db: Session, audit_sink: AuditSink | None = None):
        self.db = db
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.sequences = SequenceService(db)

    # --- Reads ---

    def get_entry(self, tenant_id: str, entry_id: int) -> JournalEntry:
        entry = self.db.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(
                JournalEntry.id == entry_id,
                JournalEntry.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if not entry:
            raise EntryNotFound(entry_id)
        return entry

    def get_by_number(self, tenant_id: str, entry_number: str) -> JournalEntry:
        entry = self.db.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.entry_number == entry_number,
            )
        ).scalar_one_or_none()
        if not entry:
            raise EntryNotFound(entry_number)
        return entry

    def list_entries(
        self, tenant_id: str, filters: JournalEntryFilter | None = None
    ) -> tuple[list[JournalEntry], int]:
        """
        Search a tenant's journal.

        Returns one page of entries and the total match count.
        The amount range applies to the entry total.
        """
        filters = filters or JournalEntryFilter()
        settings = get_settings()
        limit = min(filters.limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

        conditions = [JournalEntry.tenant_id == tenant_id]
        if filters.start_date:
            conditions.append(JournalEntry.date >= filters.start_date)
        if filters.end_date:
            conditions.append(JournalEntry.date <= filters.end_date)
        if filters.status:
            conditions.append(JournalEntry.status == filters.status)
        if filters.min_amount is not None:
            conditions.append(JournalEntry.total_debit >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(JournalEntry.total_debit <= filters.max_amount)
        if filters.account_id is not None:
            conditions.append(JournalEntry.id.in_(
                select(JournalEntryLine.entry_id).where(
                    JournalEntryLine.account_id == filters.account_id
                )
            ))
        if filters.query:
            pattern = f"%{filters.query}%"
            conditions.append(or_(
                JournalEntry.description.ilike(pattern),
                JournalEntry.reference.ilike(pattern),
                JournalEntry.entry_number.ilike(pattern),
            ))

        total = self.db.execute(
            select(func.count(JournalEntry.id)).where(*conditions)
        ).scalar()

        column = SORT_COLUMNS[filters.sort_by]
        order = column.asc() if filters.sort_order == "asc" else column.desc()
        tiebreak = (
            JournalEntry.sequence_number.asc()
            if filters.sort_order == "asc"
            else JournalEntry.sequence_number.desc()
        )
        entries = self.db.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(*conditions)
            .order_by(order, tiebreak)
            .offset((filters.page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(entries), total

    @staticmethod
    def page_count(total: int, limit: int) -> int:
        return max(1, math.ceil(total / limit))

    # --- Writes ---

    def create_draft(
        self,
        tenant_id: str,
        request: JournalEntryCreate,
        actor_id: str,
    ) -> JournalEntry:
        """
        Create a DRAFT entry and assign its entry number.

        The number is drawn from the tenant counter in the same
        transaction that inserts the entry, so a failed insert
        never burns a number.
        """
        facts = []

        def operation() -> JournalEntry:
            facts.clear()
            lines = build_lines(tenant_id, request.lines)
            load_usable_accounts(
                self.db, tenant_id, {line.account_id for line in lines}
            )

            sequence_number, entry_number = self.sequences.next_entry_number(
                tenant_id
            )
            entry = JournalEntry(
                tenant_id=tenant_id,
                entry_number=entry_number,
                sequence_number=sequence_number,
                date=request.date,
                description=request.description,
                reference=request.reference,
                cash_flow_activity=request.cash_flow_activity,
                status=EntryStatus.DRAFT,
                created_by=actor_id,
                lines=lines,
            )
            entry.recompute_totals()
            self.db.add(entry)
            self.db.flush()
            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_CREATED, entry, actor_id,
                total_debit=entry.total_debit,
                total_credit=entry.total_credit,
            ))
            return entry

        entry = run_atomic(self.db, operation, name="create_draft")
        self._emit(facts)
        return entry

    def update_draft(
        self,
        tenant_id: str,
        entry_id: int,
        patch: JournalEntryUpdate,
        actor_id: str,
    ) -> JournalEntry:
        """Edit a draft. Replacing lines re-validates them."""
        changes = patch.model_dump(exclude_unset=True)
        facts = []

        def operation() -> JournalEntry:
            facts.clear()
            entry = self._lock_entry(tenant_id, entry_id)
            entry.ensure_draft()

            if patch.lines is not None:
                lines = build_lines(tenant_id, patch.lines)
                load_usable_accounts(
                    self.db, tenant_id, {line.account_id for line in lines}
                )
                entry.lines = lines
                entry.recompute_totals()

            for field_name in ("date", "description", "reference", "cash_flow_activity"):
                if field_name in changes:
                    setattr(entry, field_name, changes[field_name])

            self.db.flush()
            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_UPDATED, entry, actor_id,
                changes=sorted(changes),
            ))
            return entry

        entry = run_atomic(self.db, operation, name="update_draft")
        self._emit(facts)
        return entry

    def cancel_draft(
        self, tenant_id: str, entry_id: int, actor_id: str
    ) -> JournalEntry:
        """Abandon a draft. It keeps its entry number; no balance ever moves."""
        facts = []

        def operation() -> JournalEntry:
            facts.clear()
            entry = self._lock_entry(tenant_id, entry_id)
            entry.ensure_draft()
            entry.transition_to(EntryStatus.CANCELLED)
            self.db.flush()
            facts.append(entry_fact(
                AuditAction.JOURNAL_ENTRY_CANCELLED, entry, actor_id
            ))
            return entry

        entry = run_atomic(self.db, operation, name="cancel_draft")
        self._emit(facts)
        return entry

    # --- Helpers ---

    def _lock_entry(self, tenant_id: str, entry_id: int) -> JournalEntry:
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
        return entry

    def _emit(self, facts: list[AuditFact]) -> None:
        for fact in facts:
            emit_audit(self.audit_sink, fact)
