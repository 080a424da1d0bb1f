"""
Journal entry API endpoints.

Drafts are created and edited here, then posted, cancelled or
reversed through the action endpoints. Balance changes only
ever happen inside the post and reverse calls.
"""

from datetime import date
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledger_engine.config import get_settings
from ledger_engine.dependencies import (
    Identity,
    get_audit_sink,
    get_identity,
    get_notification_sink,
    get_report_cache,
)
from ledger_engine.models.base import get_db
from ledger_engine.models.enums import EntryStatus
from ledger_engine.schemas.journal import (
    JournalEntryCreate,
    JournalEntryUpdate,
    JournalEntryFilter,
    JournalEntryResponse,
    JournalEntryPage,
    ReversalRequest,
)
from ledger_engine.services.audit_service import AuditSink
from ledger_engine.services.journal_service import JournalService
from ledger_engine.services.notification_service import NotificationSink
from ledger_engine.services.posting_service import PostingService
from ledger_engine.services.report_cache import ReportCache
from ledger_engine.services.reversal_service import ReversalService

router = APIRouter(prefix="/journal-entries", tags=["Journal"])


@router.post("", response_model=JournalEntryResponse, status_code=201)
def create_draft(
    request: JournalEntryCreate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """
    Create a DRAFT entry.

    The entry gets its number immediately. It does not need to
    balance until it is posted.
    """
    service = JournalService(db, audit_sink=audit_sink)
    return service.create_draft(identity.tenant_id, request, identity.actor_id)


@router.get("", response_model=JournalEntryPage)
def list_entries(
    start_date: date | None = None,
    end_date: date | None = None,
    account_id: int | None = None,
    status: EntryStatus | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    query: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort_by: Literal["date", "entry_number", "amount"] = "date",
    sort_order: Literal["asc", "desc"] = "desc",
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    filters = JournalEntryFilter(
        start_date=start_date,
        end_date=end_date,
        account_id=account_id,
        status=status,
        min_amount=min_amount,
        max_amount=max_amount,
        query=query,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    service = JournalService(db)
    entries, total = service.list_entries(identity.tenant_id, filters)

    settings = get_settings()
    effective_limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    return JournalEntryPage(
        items=[JournalEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        limit=effective_limit,
        pages=JournalService.page_count(total, effective_limit),
    )


@router.get("/{entry_id}", response_model=JournalEntryResponse)
def get_entry(
    entry_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return JournalService(db).get_entry(identity.tenant_id, entry_id)


@router.patch("/{entry_id}", response_model=JournalEntryResponse)
def update_draft(
    entry_id: int,
    patch: JournalEntryUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    """Edit a DRAFT entry. Anything else is rejected with 409."""
    service = JournalService(db, audit_sink=audit_sink)
    return service.update_draft(
        identity.tenant_id, entry_id, patch, identity.actor_id
    )


@router.post("/{entry_id}/post", response_model=JournalEntryResponse)
def post_entry(
    entry_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    notification_sink: NotificationSink = Depends(get_notification_sink),
    report_cache: ReportCache = Depends(get_report_cache),
):
    """
    Post a DRAFT entry to the ledger.

    Debits must equal credits. Account balances and the entry
    status change together or not at all.
    """
    service = PostingService(
        db,
        audit_sink=audit_sink,
        notification_sink=notification_sink,
        report_cache=report_cache,
    )
    return service.post(identity.tenant_id, entry_id, identity.actor_id)


@router.post("/{entry_id}/cancel", response_model=JournalEntryResponse)
def cancel_draft(
    entry_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
):
    service = JournalService(db, audit_sink=audit_sink)
    return service.cancel_draft(identity.tenant_id, entry_id, identity.actor_id)


@router.post(
    "/{entry_id}/reverse",
    response_model=JournalEntryResponse,
    status_code=201,
)
def reverse_entry(
    entry_id: int,
    request: ReversalRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
    notification_sink: NotificationSink = Depends(get_notification_sink),
    report_cache: ReportCache = Depends(get_report_cache),
):
    """
    Reverse a POSTED entry.

    Returns the new, already posted, reversal entry. The
    original is marked REVERSED and linked to it.
    """
    service = ReversalService(
        db,
        audit_sink=audit_sink,
        notification_sink=notification_sink,
        report_cache=report_cache,
    )
    return service.reverse(
        identity.tenant_id, entry_id, request, identity.actor_id
    )
