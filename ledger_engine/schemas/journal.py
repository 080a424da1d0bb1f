"""
Pydantic schemas for journal entries.

Line shape (exactly one of debit/credit) and the two-line
minimum are checked by JournalService, not here, so that they
surface as ledger validation errors with the offending line
number rather than as generic schema errors.
"""

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ledger_engine.models.enums import EntryStatus, CashFlowActivity


# --- Request Schemas ---

class JournalLineCreate(BaseModel):
    """A single debit or credit against one account."""
    account_id: int
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    description: str | None = Field(default=None, max_length=255)
    cost_center_id: str | None = Field(default=None, max_length=64)
    project_id: str | None = Field(default=None, max_length=64)


class JournalEntryCreate(BaseModel):
    """A draft entry. Balance is not required until posting."""
    date: dt.date
    description: str = Field(min_length=1, max_length=255)
    reference: str | None = Field(default=None, max_length=100)
    cash_flow_activity: CashFlowActivity | None = None
    lines: list[JournalLineCreate]


class JournalEntryUpdate(BaseModel):
    """Patch for a draft. Omitted fields are left unchanged."""
    date: dt.date | None = None
    description: str | None = Field(default=None, min_length=1, max_length=255)
    reference: str | None = Field(default=None, max_length=100)
    cash_flow_activity: CashFlowActivity | None = None
    lines: list[JournalLineCreate] | None = None

    @field_validator("date", "description")
    @classmethod
    def must_not_be_null(cls, v):
        # Omit a field to keep it; null cannot clear a required one
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class ReversalRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    date: dt.date | None = None


class JournalEntryFilter(BaseModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    account_id: int | None = None
    status: EntryStatus | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    query: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int | None = Field(default=None, ge=1)
    sort_by: Literal["date", "entry_number", "amount"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"


# --- Response Schemas ---

class JournalLineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str | None
    cost_center_id: str | None
    project_id: str | None

    model_config = {"from_attributes": True}


class JournalEntryResponse(BaseModel):
    id: int
    tenant_id: str
    entry_number: str
    date: dt.date
    description: str
    reference: str | None
    status: EntryStatus
    cash_flow_activity: CashFlowActivity | None
    total_debit: Decimal
    total_credit: Decimal
    created_by: str
    created_at: dt.datetime
    posted_by: str | None
    posted_at: dt.datetime | None
    reversed_by_entry_id: int | None
    reversed_at: dt.datetime | None
    reversal_reason: str | None
    original_entry_id: int | None
    lines: list[JournalLineResponse]

    model_config = {"from_attributes": True}


class JournalEntryPage(BaseModel):
    items: list[JournalEntryResponse]
    total: int
    page: int
    limit: int
    pages: int
