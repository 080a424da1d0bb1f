"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class NormalBalance(str, enum.Enum):
    """The side on which an account type naturally increases."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def normal_balance(self) -> NormalBalance:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class EntryStatus(str, enum.Enum):
    """Lifecycle of a journal entry."""
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"
    REVERSED = "REVERSED"


# Statuses whose lines count towards balances and reports.
# A REVERSED entry stays posted; its reversal offsets it.
REPORTABLE_STATUSES = (EntryStatus.POSTED, EntryStatus.REVERSED)


class CashFlowActivity(str, enum.Enum):
    OPERATING = "OPERATING"
    INVESTING = "INVESTING"
    FINANCING = "FINANCING"


class BudgetPeriod(str, enum.Enum):
    ANNUAL = "ANNUAL"
    QUARTERLY = "QUARTERLY"
    MONTHLY = "MONTHLY"


class BudgetStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class AuditAction(str, enum.Enum):
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_UPDATED = "ACCOUNT_UPDATED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    ACCOUNT_ACTIVATED = "ACCOUNT_ACTIVATED"
    ACCOUNT_DELETED = "ACCOUNT_DELETED"
    JOURNAL_ENTRY_CREATED = "JOURNAL_ENTRY_CREATED"
    JOURNAL_ENTRY_UPDATED = "JOURNAL_ENTRY_UPDATED"
    JOURNAL_ENTRY_CANCELLED = "JOURNAL_ENTRY_CANCELLED"
    JOURNAL_ENTRY_POSTED = "JOURNAL_ENTRY_POSTED"
    JOURNAL_ENTRY_REVERSED = "JOURNAL_ENTRY_REVERSED"
    BUDGET_CREATED = "BUDGET_CREATED"
    BUDGET_UPDATED = "BUDGET_UPDATED"
    BUDGET_DELETED = "BUDGET_DELETED"
