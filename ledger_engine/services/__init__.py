"""Ledger services."""

from ledger_engine.services.account_service import AccountService
from ledger_engine.services.journal_service import JournalService
from ledger_engine.services.posting_service import PostingService
from ledger_engine.services.reversal_service import ReversalService
from ledger_engine.services.report_service import ReportService
from ledger_engine.services.report_cache import ReportCache, CachedReportService

__all__ = [
    "AccountService",
    "JournalService",
    "PostingService",
    "ReversalService",
    "ReportService",
    "ReportCache",
    "CachedReportService",
]
