"""
Per-tenant counters.

Entry numbers are allocated from a single row per (tenant, name).
Allocation locks that row, so concurrent drafts for the same
tenant queue on it and every number is handed out exactly once.
The counter only advances when the allocating transaction
commits, which keeps numbers gapless.
"""

from sqlalchemy import String, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base


class TenantSequence(Base):
    __tablename__ = "tenant_sequences"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_sequence_tenant_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    next_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<TenantSequence {self.tenant_id}/{self.name} next={self.next_value}>"
