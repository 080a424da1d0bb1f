"""
Pydantic schemas for budgets and budget variance analysis.

Planned and actual amounts are both in the account's natural
sign: a positive figure means the account moved on its normal
side (revenue earned, expense incurred, asset increased).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ledger_engine.models.enums import AccountType, BudgetPeriod, BudgetStatus


# --- Request Schemas ---

class BudgetItemCreate(BaseModel):
    account_id: int
    planned_amount: Decimal = Field(ge=0)
    notes: str | None = Field(default=None, max_length=255)


class BudgetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    year: int = Field(ge=1900, le=9999)
    period: BudgetPeriod = BudgetPeriod.ANNUAL
    start_date: date
    end_date: date
    status: BudgetStatus = BudgetStatus.DRAFT
    description: str | None = None
    items: list[BudgetItemCreate] = Field(min_length=1)


class BudgetUpdate(BaseModel):
    """Name, description and status may change; the plan may not."""
    name: str | None = Field(default=None, min_length=1, max_length=150)
    description: str | None = None
    status: BudgetStatus | None = None

    @field_validator("name", "status")
    @classmethod
    def must_not_be_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


# --- Response Schemas ---

class BudgetItemResponse(BaseModel):
    id: int
    account_id: int
    planned_amount: Decimal
    notes: str | None

    model_config = {"from_attributes": True}


class BudgetResponse(BaseModel):
    id: int
    tenant_id: str
    name: str
    year: int
    period: BudgetPeriod
    start_date: date
    end_date: date
    status: BudgetStatus
    description: str | None
    total_planned: Decimal
    items: list[BudgetItemResponse]
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BudgetVarianceLine(BaseModel):
    account_id: int
    account_number: str
    account_name: str
    account_type: AccountType
    planned_amount: Decimal
    actual_amount: Decimal
    variance: Decimal
    # None when nothing was planned for the account
    variance_percent: Decimal | None
    status: Literal["OK", "ALERT"]


class BudgetVarianceReport(BaseModel):
    budget_id: int
    budget_name: str
    tenant_id: str
    start_date: date
    end_date: date
    alert_threshold_percent: Decimal
    lines: list[BudgetVarianceLine]
    total_planned: Decimal
    total_actual: Decimal
    total_variance: Decimal

