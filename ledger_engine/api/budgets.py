"""
Budget API endpoints.

Budgets are planning data only. The variances endpoint compares
a budget against posted journal activity at request time.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ledger_engine.dependencies import Identity, get_audit_sink, get_identity
from ledger_engine.models.base import get_db
from ledger_engine.models.enums import BudgetStatus
from ledger_engine.schemas.budget import (
    BudgetCreate,
    BudgetUpdate,
    BudgetResponse,
    BudgetVarianceReport,
)
from ledger_engine.services.audit_service import AuditSink
from ledger_engine.services.budget_service import BudgetService

router = APIRouter(prefix="/budgets", tags=["Budgets"])


@router.post("", response_model=BudgetResponse, status_code=201)
def create_budget(
    request: BudgetCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    return BudgetService(db, audit_sink=audit_sink).create_budget(
        identity.tenant_id, request, identity.actor_id
    )


@router.get("", response_model=list[BudgetResponse])
def list_budgets(
    year: int | None = None,
    status: BudgetStatus | None = None,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return BudgetService(db).list_budgets(identity.tenant_id, year, status)


@router.get("/{budget_id}", response_model=BudgetResponse)
def get_budget(
    budget_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return BudgetService(db).get_budget(identity.tenant_id, budget_id)


@router.patch("/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: int,
    request: BudgetUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    return BudgetService(db, audit_sink=audit_sink).update_budget(
        identity.tenant_id, budget_id, request, identity.actor_id
    )


@router.delete("/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    BudgetService(db, audit_sink=audit_sink).delete_budget(
        identity.tenant_id, budget_id, identity.actor_id
    )
    return Response(status_code=204)


@router.get("/{budget_id}/variances", response_model=BudgetVarianceReport)
def analyze_variances(
    budget_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """Planned against actual per account, flagging large variances."""
    return BudgetService(db).analyze_variances(identity.tenant_id, budget_id)
