"""
Chart of accounts API endpoints.

Thin layer: parse the request, call AccountService, shape the
response. Ledger errors are turned into JSON responses by the
handler registered in main.py.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ledger_engine.dependencies import (
    Identity,
    get_audit_sink,
    get_identity,
    get_report_cache,
)
from ledger_engine.models.base import get_db
from ledger_engine.models.enums import AccountType
from ledger_engine.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountFilter,
    AccountResponse,
    AccountBalanceResponse,
    AccountNode,
)
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.audit_service import AuditSink
from ledger_engine.services.report_cache import ReportCache

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def _service(db: Session, audit_sink: AuditSink) -> AccountService:
    return AccountService(db, audit_sink=audit_sink)


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """Create an account with a zero balance."""
    return _service(db, audit_sink).create_account(
        identity.tenant_id, request, identity.actor_id
    )


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    account_type: AccountType | None = None,
    is_active: bool | None = None,
    parent_id: int | None = None,
    sub_type: str | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    filters = AccountFilter(
        account_type=account_type,
        is_active=is_active,
        parent_id=parent_id,
        sub_type=sub_type,
    )
    return AccountService(db).list_accounts(identity.tenant_id, filters)


@router.get("/tree", response_model=list[AccountNode])
def get_account_tree(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """The chart of accounts as a tree with rolled-up balances."""
    return AccountService(db).get_account_tree(identity.tenant_id)


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return AccountService(db).get_account(identity.tenant_id, account_id)


@router.patch("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: int,
    request: AccountUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    report_cache: ReportCache = Depends(get_report_cache),
):
    """Update account metadata. Type and number cannot change."""
    service = AccountService(db, audit_sink=audit_sink, report_cache=report_cache)
    return service.update_account(
        identity.tenant_id, account_id, request, identity.actor_id
    )


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return AccountService(db).get_balance(identity.tenant_id, account_id)


@router.post("/{account_id}/deactivate", response_model=AccountResponse)
def deactivate_account(
    account_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    return _service(db, audit_sink).deactivate(
        identity.tenant_id, account_id, identity.actor_id
    )


@router.post("/{account_id}/activate", response_model=AccountResponse)
def activate_account(
    account_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    return _service(db, audit_sink).activate(
        identity.tenant_id, account_id, identity.actor_id
    )


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """Delete an account that has never been used."""
    _service(db, audit_sink).delete_account(
        identity.tenant_id, account_id, identity.actor_id
    )
    return Response(status_code=204)
