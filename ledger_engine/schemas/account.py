"""
Pydantic schemas for the chart of accounts.

These define the API contract — what data comes in,
what data goes out. They are separate from the database
models because the API shape and the storage shape
are often different.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ledger_engine.models.enums import AccountType


# --- Request Schemas ---

class AccountCreate(BaseModel):
    """Request to create a new account."""
    account_number: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=150)
    account_type: AccountType
    parent_id: int | None = None
    sub_type: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=255)


class AccountUpdate(BaseModel):
    """
    Metadata changes to an account.

    The account type and number are deliberately absent: both
    are fixed for the life of the account.
    """
    name: str | None = Field(default=None, min_length=1, max_length=150)
    parent_id: int | None = None
    sub_type: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def name_must_not_be_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("name may be omitted but not null")
        return v


class AccountFilter(BaseModel):
    account_type: AccountType | None = None
    is_active: bool | None = None
    parent_id: int | None = None
    sub_type: str | None = None


# --- Response Schemas ---

class AccountResponse(BaseModel):
    id: int
    tenant_id: str
    account_number: str
    name: str
    account_type: AccountType
    sub_type: str | None
    description: str | None
    parent_id: int | None
    balance: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountBalanceResponse(BaseModel):
    """Raw stored balance plus the type's natural-sign reading of it."""
    account_id: int
    account_number: str
    account_type: AccountType
    balance: Decimal
    natural_balance: Decimal


class AccountNode(BaseModel):
    """An account in the chart tree with its subtree's rolled-up balance."""
    id: int
    account_number: str
    name: str
    account_type: AccountType
    is_active: bool
    balance: Decimal
    rollup_balance: Decimal
    children: list["AccountNode"] = Field(default_factory=list)
