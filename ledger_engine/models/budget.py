"""
Budget models.

A budget plans an amount per account over a date range. It
never touches the journal: variance analysis compares the plan
against posted activity at read time.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Integer, Numeric, ForeignKey, Text,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base
from ledger_engine.models.enums import BudgetPeriod, BudgetStatus


class Budget(Base):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "name", "year", name="uq_budget_tenant_name_year"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[BudgetPeriod] = mapped_column(
        SAEnum(BudgetPeriod, name="budget_period_enum", create_constraint=True),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(
        SAEnum(BudgetStatus, name="budget_status_enum", create_constraint=True),
        nullable=False,
        default=BudgetStatus.DRAFT,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    items: Mapped[list["BudgetItem"]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetItem.id",
    )

    @property
    def total_planned(self) -> Decimal:
        return sum((item.planned_amount for item in self.items), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Budget {self.name} {self.year} ({self.status.value})>"


class BudgetItem(Base):
    """The planned amount for one account, in its natural sign."""

    __tablename__ = "budget_items"
    __table_args__ = (
        UniqueConstraint(
            "budget_id", "account_id", name="uq_budget_item_account"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    budget_id: Mapped[int] = mapped_column(
        ForeignKey("budgets.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    planned_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)

    budget: Mapped["Budget"] = relationship(back_populates="items")
    account: Mapped["Account"] = relationship()
