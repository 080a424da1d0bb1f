"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from ledger_engine.models.base import Base
from ledger_engine.models.enums import (
    AccountType,
    NormalBalance,
    EntryStatus,
    CashFlowActivity,
    BudgetPeriod,
    BudgetStatus,
    AuditAction,
    REPORTABLE_STATUSES,
)
from ledger_engine.models.audit_log import AuditLog
from ledger_engine.models.account import Account
from ledger_engine.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_engine.models.tenant_sequence import TenantSequence
from ledger_engine.models.budget import Budget, BudgetItem

__all__ = [
    "Base",
    "AccountType",
    "NormalBalance",
    "EntryStatus",
    "CashFlowActivity",
    "BudgetPeriod",
    "BudgetStatus",
    "AuditAction",
    "REPORTABLE_STATUSES",
    "AuditLog",
    "Account",
    "JournalEntry",
    "JournalEntryLine",
    "TenantSequence",
    "Budget",
    "BudgetItem",
]
