"""
Journal entry and journal entry line models.

A journal entry groups two or more lines. Within a posted
entry, total debits equal total credits. That invariant is
enforced by the posting engine; the model owns the state
machine and the immutability of lines after posting.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Integer, Numeric, ForeignKey, Text,
    UniqueConstraint, Enum as SAEnum, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.exceptions import EntryNotDraft, InvalidStatusTransition
from ledger_engine.models.base import Base
from ledger_engine.models.enums import EntryStatus, CashFlowActivity


# Valid state transitions. Anything else is rejected by transition_to().
VALID_TRANSITIONS: dict[EntryStatus, set[EntryStatus]] = {
    EntryStatus.DRAFT: {EntryStatus.POSTED, EntryStatus.CANCELLED},
    EntryStatus.POSTED: {EntryStatus.REVERSED},
    EntryStatus.CANCELLED: set(),  # Terminal
    EntryStatus.REVERSED: set(),  # Terminal
}


class JournalEntry(Base):
    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "entry_number", name="uq_entry_tenant_number"
        ),
        UniqueConstraint(
            "tenant_id", "sequence_number", name="uq_entry_tenant_sequence"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    entry_number: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[EntryStatus] = mapped_column(
        SAEnum(EntryStatus, name="entry_status_enum", create_constraint=True),
        nullable=False,
        default=EntryStatus.DRAFT,
        index=True,
    )
    cash_flow_activity: Mapped[CashFlowActivity | None] = mapped_column(
        SAEnum(
            CashFlowActivity,
            name="cash_flow_activity_enum",
            create_constraint=True,
        ),
        nullable=True,
    )
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    posted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Set on the original when a reversal is posted against it
    reversed_by_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set on the reversal, pointing back at the entry it cancels
    original_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )

    def can_transition_to(self, new_status: EntryStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: EntryStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidStatusTransition(self.status, new_status)
        self.status = new_status

    def ensure_draft(self) -> None:
        if self.status != EntryStatus.DRAFT:
            raise EntryNotDraft(self.entry_number, self.status)

    def recompute_totals(self) -> None:
        """Recompute the cached totals from the current lines."""
        self.total_debit = sum((line.debit for line in self.lines), Decimal("0"))
        self.total_credit = sum(
            (line.credit for line in self.lines), Decimal("0")
        )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} ({self.status.value})>"


class JournalEntryLine(Base):
    """
    One debit or credit against one account.

    Exactly one of debit/credit is non-zero. Cost center and
    project are reporting dimensions only.
    """

    __tablename__ = "journal_entry_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    tenant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    cost_center_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship()

    @property
    def amount(self) -> Decimal:
        """Signed effect on the account's raw balance."""
        return self.debit - self.credit

    def __repr__(self) -> str:
        side = "DR" if self.debit else "CR"
        return f"<JournalEntryLine {side} {self.debit or self.credit}>"


@event.listens_for(JournalEntryLine, "before_update")
@event.listens_for(JournalEntryLine, "before_delete")
def _lines_are_frozen_after_posting(mapper, connection, line):
    if line.entry is not None and line.entry.status != EntryStatus.DRAFT:
        raise EntryNotDraft(line.entry.entry_number, line.entry.status)
