"""
Account model (chart of accounts).

Every account belongs to one tenant and is identified within
that tenant by its account number. Accounts form a tree through
parent_id for roll-up reporting.

balance is the raw running total of debit - credit over every
posted line that references the account. Only the posting
engine writes it.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Numeric, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base
from ledger_engine.models.enums import AccountType, NormalBalance


class Account(Base):
    """
    A single account in a tenant's chart of accounts.

    The account type is fixed at creation: changing it would
    reclassify history in every report. Accounts with journal
    history are never deleted, only deactivated.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "account_number", name="uq_account_tenant_number"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    account_number: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
    )
    sub_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Every UPDATE checks and bumps the version, so a write based
    # on a stale read fails with StaleDataError instead of
    # silently overwriting another transaction's balance.
    __mapper_args__ = {"version_id_col": version}

    parent: Mapped["Account | None"] = relationship(
        remote_side=[id], back_populates="children"
    )
    children: Mapped[list["Account"]] = relationship(back_populates="parent")

    def natural_balance(self) -> Decimal:
        """Balance with the account type's sign convention applied."""
        if self.account_type.normal_balance == NormalBalance.DEBIT:
            return self.balance
        return Decimal("0") - self.balance

    def __repr__(self) -> str:
        return (
            f"<Account {self.account_number} "
            f"({self.account_type.value}) tenant={self.tenant_id}>"
        )
