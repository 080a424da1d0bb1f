"""
Report result types.

Each report has its own concrete shape so consumers (the HTTP
adapter, exporters) know exactly what they receive. All amounts
are Decimals rounded to the currency minor unit.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_engine.models.enums import AccountType, CashFlowActivity


# --- Trial balance ---

class TrialBalanceRow(BaseModel):
    account_id: int
    account_number: str
    account_name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal


class TrialBalance(BaseModel):
    tenant_id: str
    as_of: date
    rows: list[TrialBalanceRow]
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool


# --- Income statement / balance sheet ---

class StatementLine(BaseModel):
    """One account's contribution to a statement section."""
    account_id: int | None
    account_number: str
    account_name: str
    amount: Decimal


class StatementSection(BaseModel):
    title: str
    lines: list[StatementLine]
    total: Decimal


class IncomeStatement(BaseModel):
    tenant_id: str
    start_date: date
    end_date: date
    revenue: StatementSection
    expenses: StatementSection
    total_revenue: Decimal
    total_expense: Decimal
    net_income: Decimal


class BalanceSheet(BaseModel):
    tenant_id: str
    as_of: date
    assets: StatementSection
    liabilities: StatementSection
    equity: StatementSection
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    retained_earnings: Decimal
    balance_check: bool


# --- Cash flow ---

class CashFlowItem(BaseModel):
    entry_id: int
    entry_number: str
    date: date
    description: str
    amount: Decimal


class CashFlowSection(BaseModel):
    activity: CashFlowActivity
    items: list[CashFlowItem]
    total: Decimal


class CashFlowStatement(BaseModel):
    tenant_id: str
    start_date: date
    end_date: date
    opening_cash: Decimal
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    net_cash_flow: Decimal
    closing_cash: Decimal


# --- General ledger ---

class GeneralLedgerLine(BaseModel):
    entry_id: int
    entry_number: str
    date: date
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


class GeneralLedgerAccount(BaseModel):
    account_id: int
    account_number: str
    account_name: str
    account_type: AccountType
    opening_balance: Decimal
    lines: list[GeneralLedgerLine]
    closing_balance: Decimal


class GeneralLedger(BaseModel):
    tenant_id: str
    start_date: date
    end_date: date
    accounts: list[GeneralLedgerAccount]


class AccountActivity(BaseModel):
    """Net raw movement (debit - credit) of one account in a period."""
    tenant_id: str
    account_id: int
    start_date: date
    end_date: date
    net_movement: Decimal


# --- Integrity ---

class BalanceMismatch(BaseModel):
    account_id: int
    account_number: str
    stored_balance: Decimal
    posted_balance: Decimal


class IntegrityReport(BaseModel):
    tenant_id: str
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
    mismatched_accounts: list[BalanceMismatch] = Field(default_factory=list)
