"""
Entry number allocation.

Numbers come from a per-tenant counter row locked for the
duration of the caller's transaction. Call next_value() inside
the same unit of work that inserts the numbered row: if that
transaction rolls back, so does the counter.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_engine.config import get_settings
from ledger_engine.models.tenant_sequence import TenantSequence

JOURNAL_ENTRY_SEQUENCE = "journal_entry"


class SequenceService:

    def __init__(self, db: Session):
        self.db = db

    def _lock_counter(self, tenant_id: str, name: str) -> TenantSequence | None:
        return self.db.execute(
            select(TenantSequence)
            .where(
                TenantSequence.tenant_id == tenant_id,
                TenantSequence.name == name,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, tenant_id: str, name: str) -> int:
        """Allocate the next value of a tenant counter, starting at 1."""
        counter = self._lock_counter(tenant_id, name)
        if counter is None:
            # First use: another transaction may create the row
            # concurrently, in which case we lock theirs instead.
            try:
                with self.db.begin_nested():
                    counter = TenantSequence(
                        tenant_id=tenant_id, name=name, next_value=1
                    )
                    self.db.add(counter)
            except IntegrityError:
                counter = self._lock_counter(tenant_id, name)

        value = counter.next_value
        counter.next_value = value + 1
        self.db.flush()
        return value

    def next_entry_number(self, tenant_id: str) -> tuple[int, str]:
        """Return (sequence_number, formatted entry number) e.g. (7, 'JE000007')."""
        value = self.next_value(tenant_id, JOURNAL_ENTRY_SEQUENCE)
        prefix = get_settings().ENTRY_NUMBER_PREFIX
        return value, f"{prefix}{value:06d}"
