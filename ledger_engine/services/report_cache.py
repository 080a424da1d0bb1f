"""
Report caching.

Reports are pure functions of posted data, so a tenant's cached
results stay valid until the next post or reversal for that
tenant. The posting engine invalidates the tenant after each
commit.
"""

import logging
import threading
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Hashable

from ledger_engine.config import get_settings
from ledger_engine.schemas.report import (
    BalanceSheet,
    CashFlowStatement,
    GeneralLedger,
    IncomeStatement,
    IntegrityReport,
    TrialBalance,
)
from ledger_engine.services.report_service import ReportService

logger = logging.getLogger(__name__)


class ReportCache:
    """
    In-process, per-tenant report cache.

    Each tenant has a generation counter bumped on invalidation.
    A result computed under an older generation is dropped rather
    than stored, so a report that raced a posting can never be
    served after it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, dict[Hashable, Any]] = defaultdict(dict)
        self._generations: dict[str, int] = defaultdict(int)

    def generation(self, tenant_id: str) -> int:
        with self._lock:
            return self._generations[tenant_id]

    def get(self, tenant_id: str, key: Hashable) -> Any | None:
        with self._lock:
            return self._entries[tenant_id].get(key)

    def store(
        self, tenant_id: str, key: Hashable, value: Any, generation: int
    ) -> bool:
        """Store value unless the tenant was invalidated since `generation`."""
        with self._lock:
            if self._generations[tenant_id] != generation:
                return False
            self._entries[tenant_id][key] = value
            return True

    def invalidate(self, tenant_id: str) -> None:
        with self._lock:
            self._generations[tenant_id] += 1
            self._entries.pop(tenant_id, None)
        logger.debug("Report cache invalidated for tenant %s", tenant_id)

    def clear(self) -> None:
        with self._lock:
            for tenant_id in list(self._entries):
                self._generations[tenant_id] += 1
            self._entries.clear()


class CachedReportService:
    """
    Wraps a ReportService with a ReportCache.

    Callers receive deep copies, so mutating a returned report
    never leaks into the cache.
    """

    def __init__(
        self,
        reports: ReportService,
        cache: ReportCache,
        enabled: bool | None = None,
    ):
        self.reports = reports
        self.cache = cache
        self.enabled = (
            get_settings().REPORT_CACHE_ENABLED if enabled is None else enabled
        )

    def _cached(self, tenant_id: str, key: tuple, compute: Callable[[], Any]):
        if not self.enabled:
            return compute()

        hit = self.cache.get(tenant_id, key)
        if hit is not None:
            return _copy(hit)

        generation = self.cache.generation(tenant_id)
        result = compute()
        if not self.cache.store(tenant_id, key, result, generation):
            logger.debug("Dropped stale %s for tenant %s", key[0], tenant_id)
        return _copy(result)

    def trial_balance(self, tenant_id: str, as_of: date) -> TrialBalance:
        return self._cached(
            tenant_id, ("trial_balance", as_of),
            lambda: self.reports.trial_balance(tenant_id, as_of),
        )

    def income_statement(
        self, tenant_id: str, start_date: date, end_date: date
    ) -> IncomeStatement:
        return self._cached(
            tenant_id, ("income_statement", start_date, end_date),
            lambda: self.reports.income_statement(tenant_id, start_date, end_date),
        )

    def balance_sheet(self, tenant_id: str, as_of: date) -> BalanceSheet:
        return self._cached(
            tenant_id, ("balance_sheet", as_of),
            lambda: self.reports.balance_sheet(tenant_id, as_of),
        )

    def cash_flow_statement(
        self, tenant_id: str, start_date: date, end_date: date
    ) -> CashFlowStatement:
        return self._cached(
            tenant_id, ("cash_flow", start_date, end_date),
            lambda: self.reports.cash_flow_statement(
                tenant_id, start_date, end_date
            ),
        )

    def general_ledger(
        self,
        tenant_id: str,
        start_date: date,
        end_date: date,
        account_id: int | None = None,
    ) -> GeneralLedger:
        return self._cached(
            tenant_id, ("general_ledger", start_date, end_date, account_id),
            lambda: self.reports.general_ledger(
                tenant_id, start_date, end_date, account_id
            ),
        )

    def account_activity(
        self,
        tenant_id: str,
        account_id: int,
        start_date: date,
        end_date: date,
    ) -> Decimal:
        return self._cached(
            tenant_id, ("account_activity", account_id, start_date, end_date),
            lambda: self.reports.account_activity(
                tenant_id, account_id, start_date, end_date
            ),
        )

    def check_integrity(self, tenant_id: str) -> IntegrityReport:
        # Never cached: it exists to look at what is actually stored
        return self.reports.check_integrity(tenant_id)


def _copy(value):
    if hasattr(value, "model_copy"):
        return value.model_copy(deep=True)
    return value
