"""
Budget service: planned amounts and variance analysis.

A budget is plain reference data. Actuals are never stored on
it; analyze_variances() replays posted activity for the budget's
date range through ReportService each time it is called.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ledger_engine.config import get_settings
from ledger_engine.exceptions import (
    BudgetNotFound,
    DuplicateBudget,
    DuplicateBudgetItem,
    InvalidDateRange,
)
from ledger_engine.models.budget import Budget, BudgetItem
from ledger_engine.models.enums import AuditAction, BudgetStatus, NormalBalance
from ledger_engine.money import ZERO, to_money
from ledger_engine.schemas.budget import (
    BudgetCreate,
    BudgetUpdate,
    BudgetVarianceLine,
    BudgetVarianceReport,
)
from ledger_engine.services.audit_service import (
    AuditFact,
    AuditSink,
    LoggingAuditSink,
    emit_audit,
)
from ledger_engine.services.journal_service import load_usable_accounts
from ledger_engine.services.report_service import ReportService
from ledger_engine.services.unit_of_work import run_atomic

logger = logging.getLogger(__name__)

PERCENT = Decimal("0.01")


def variance_percent(planned: Decimal, variance: Decimal) -> Decimal | None:
    if planned == ZERO:
        return None
    return (variance / planned * 100).quantize(PERCENT, rounding=ROUND_HALF_UP)


def variance_status(
    actual: Decimal, percent: Decimal | None, threshold: Decimal
) -> str:
    """ALERT when the variance exceeds the threshold in either direction."""
    if percent is None:
        # Anything spent against a zero plan is off budget
        return "ALERT" if actual != ZERO else "OK"
    return "ALERT" if abs(percent) > threshold else "OK"


class BudgetService:

    def __init__(
        self,
        db: Session,
        audit_sink: AuditSink | None = None,
        reports: ReportService | None = None,
    ):
        self.db = db
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.reports = reports or ReportService(db)

    # --- Reads ---

    def get_budget(self, tenant_id: str, budget_id: int) -> Budget:
        budget = self.db.execute(
            select(Budget)
            .options(selectinload(Budget.items))
            .where(Budget.id == budget_id, Budget.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not budget:
            raise BudgetNotFound(budget_id)
        return budget

    def list_budgets(
        self,
        tenant_id: str,
        year: int | None = None,
        status: BudgetStatus | None = None,
    ) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(selectinload(Budget.items))
            .where(Budget.tenant_id == tenant_id)
            .order_by(Budget.year.desc(), Budget.name)
        )
        if year is not None:
            stmt = stmt.where(Budget.year == year)
        if status is not None:
            stmt = stmt.where(Budget.status == status)
        return list(self.db.execute(stmt).scalars().all())

    def analyze_variances(
        self, tenant_id: str, budget_id: int
    ) -> BudgetVarianceReport:
        """
        Compare each planned amount with posted activity.

        Actuals cover POSTED and REVERSED entries dated inside the
        budget range, in the account's natural sign. Variance is
        actual minus planned, so overspending an expense and
        beating a revenue target are both positive.
        """
        budget = self.get_budget(tenant_id, budget_id)
        threshold = get_settings().BUDGET_VARIANCE_ALERT_PERCENT

        lines = []
        for item in budget.items:
            account = item.account
            raw = self.reports.account_activity(
                tenant_id, account.id, budget.start_date, budget.end_date
            )
            if account.account_type.normal_balance == NormalBalance.CREDIT:
                raw = -raw
            actual = to_money(raw) + ZERO
            planned = to_money(item.planned_amount)
            variance = actual - planned
            percent = variance_percent(planned, variance)
            lines.append(BudgetVarianceLine(
                account_id=account.id,
                account_number=account.account_number,
                account_name=account.name,
                account_type=account.account_type,
                planned_amount=planned,
                actual_amount=actual,
                variance=variance,
                variance_percent=percent,
                status=variance_status(actual, percent, threshold),
            ))

        total_planned = to_money(sum((line.planned_amount for line in lines), ZERO))
        total_actual = to_money(sum((line.actual_amount for line in lines), ZERO))
        alerts = sum(1 for line in lines if line.status == "ALERT")
        if alerts:
            logger.info(
                "Budget %s for tenant %s has %d accounts over the %s%% threshold",
                budget.name, tenant_id, alerts, threshold,
            )
        return BudgetVarianceReport(
            budget_id=budget.id,
            budget_name=budget.name,
            tenant_id=tenant_id,
            start_date=budget.start_date,
            end_date=budget.end_date,
            alert_threshold_percent=threshold,
            lines=lines,
            total_planned=total_planned,
            total_actual=total_actual,
            total_variance=total_actual - total_planned,
        )

    # --- Writes ---

    def create_budget(
        self,
        tenant_id: str,
        request: BudgetCreate,
        actor_id: str,
    ) -> Budget:
        """
        Create a budget with one item per account.

        Every account must belong to the tenant and be active, and
        may appear only once. Name and year are unique per tenant.
        """
        if request.start_date > request.end_date:
            raise InvalidDateRange(request.start_date, request.end_date)
        seen = set()
        for item in request.items:
            if item.account_id in seen:
                raise DuplicateBudgetItem(item.account_id)
            seen.add(item.account_id)

        facts = []

        def operation() -> Budget:
            facts.clear()
            load_usable_accounts(self.db, tenant_id, seen)
            if self._name_taken(tenant_id, request.name, request.year):
                raise DuplicateBudget(request.name, request.year)

            budget = Budget(
                tenant_id=tenant_id,
                name=request.name,
                year=request.year,
                period=request.period,
                start_date=request.start_date,
                end_date=request.end_date,
                status=request.status,
                description=request.description,
                created_by=actor_id,
                items=[
                    BudgetItem(
                        account_id=item.account_id,
                        planned_amount=to_money(item.planned_amount),
                        notes=item.notes,
                    )
                    for item in request.items
                ],
            )
            self.db.add(budget)
            self._flush(request.name, request.year)
            facts.append(self._fact(
                AuditAction.BUDGET_CREATED, budget, actor_id,
                {
                    "name": budget.name,
                    "year": budget.year,
                    "total_planned": budget.total_planned,
                },
            ))
            return budget

        budget = run_atomic(self.db, operation, name="create_budget")
        self._emit(facts)
        logger.info(
            "Created budget %s (%s) for tenant %s",
            request.name, request.year, tenant_id,
        )
        return budget

    def update_budget(
        self,
        tenant_id: str,
        budget_id: int,
        request: BudgetUpdate,
        actor_id: str,
    ) -> Budget:
        changes = request.model_dump(exclude_unset=True)
        facts = []

        def operation() -> Budget:
            facts.clear()
            budget = self.get_budget(tenant_id, budget_id)
            name = changes.get("name", budget.name)
            if name != budget.name and self._name_taken(
                tenant_id, name, budget.year
            ):
                raise DuplicateBudget(name, budget.year)
            for field_name, value in changes.items():
                setattr(budget, field_name, value)
            self._flush(name, budget.year)
            facts.append(self._fact(
                AuditAction.BUDGET_UPDATED, budget, actor_id,
                {"changes": sorted(changes)},
            ))
            return budget

        budget = run_atomic(self.db, operation, name="update_budget")
        self._emit(facts)
        return budget

    def delete_budget(
        self, tenant_id: str, budget_id: int, actor_id: str
    ) -> None:
        facts = []

        def operation() -> None:
            facts.clear()
            budget = self.get_budget(tenant_id, budget_id)
            facts.append(self._fact(
                AuditAction.BUDGET_DELETED, budget, actor_id,
                {"name": budget.name, "year": budget.year},
            ))
            self.db.delete(budget)
            self.db.flush()

        run_atomic(self.db, operation, name="delete_budget")
        self._emit(facts)

    # --- Helpers ---

    def _name_taken(self, tenant_id: str, name: str, year: int) -> bool:
        return self.db.execute(
            select(Budget.id).where(
                Budget.tenant_id == tenant_id,
                Budget.name == name,
                Budget.year == year,
            )
        ).first() is not None

    def _flush(self, name: str, year: int) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            # A concurrent write took the name after our check
            raise DuplicateBudget(name, year) from exc

    @staticmethod
    def _fact(
        action: AuditAction,
        budget: Budget,
        actor_id: str | None,
        details: dict,
    ) -> AuditFact:
        return AuditFact(
            action=action,
            entity_type="budget",
            entity_id=str(budget.id),
            tenant_id=budget.tenant_id,
            actor_id=actor_id,
            details=details,
        )

    def _emit(self, facts: list[AuditFact]) -> None:
        for fact in facts:
            emit_audit(self.audit_sink, fact)
