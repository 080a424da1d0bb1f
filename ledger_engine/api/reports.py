"""
Financial report endpoints.

All reports are read-only and served through the report cache.
Dates default to today; period reports default to the start of
the current year.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_engine.dependencies import Identity, get_identity, get_report_cache
from ledger_engine.models.base import get_db
from ledger_engine.schemas.report import (
    AccountActivity,
    BalanceSheet,
    CashFlowStatement,
    GeneralLedger,
    IncomeStatement,
    IntegrityReport,
    TrialBalance,
)
from ledger_engine.services.report_cache import CachedReportService, ReportCache
from ledger_engine.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_reports(
    db: Session = Depends(get_db),
    report_cache: ReportCache = Depends(get_report_cache),
) -> CachedReportService:
    return CachedReportService(ReportService(db), report_cache)


def _period(start_date: date | None, end_date: date | None) -> tuple[date, date]:
    end_date = end_date or date.today()
    start_date = start_date or end_date.replace(month=1, day=1)
    return start_date, end_date


@router.get("/trial-balance", response_model=TrialBalance)
def trial_balance(
    as_of: date | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    return reports.trial_balance(identity.tenant_id, as_of or date.today())


@router.get("/income-statement", response_model=IncomeStatement)
def income_statement(
    start_date: date | None = None,
    end_date: date | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    start_date, end_date = _period(start_date, end_date)
    return reports.income_statement(identity.tenant_id, start_date, end_date)


@router.get("/balance-sheet", response_model=BalanceSheet)
def balance_sheet(
    as_of: date | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    return reports.balance_sheet(identity.tenant_id, as_of or date.today())


@router.get("/cash-flow", response_model=CashFlowStatement)
def cash_flow(
    start_date: date | None = None,
    end_date: date | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    start_date, end_date = _period(start_date, end_date)
    return reports.cash_flow_statement(identity.tenant_id, start_date, end_date)


@router.get("/general-ledger", response_model=GeneralLedger)
def general_ledger(
    start_date: date | None = None,
    end_date: date | None = None,
    account_id: int | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    start_date, end_date = _period(start_date, end_date)
    return reports.general_ledger(
        identity.tenant_id, start_date, end_date, account_id
    )


@router.get("/account-activity", response_model=AccountActivity)
def account_activity(
    account_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    start_date, end_date = _period(start_date, end_date)
    return AccountActivity(
        tenant_id=identity.tenant_id,
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        net_movement=reports.account_activity(
            identity.tenant_id, account_id, start_date, end_date
        ),
    )


@router.get("/integrity", response_model=IntegrityReport)
def integrity(
    identity: Identity = Depends(get_identity),
    reports: CachedReportService = Depends(get_reports),
):
    """Compare stored balances against a replay of the journal."""
    return reports.check_integrity(identity.tenant_id)
