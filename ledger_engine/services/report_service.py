"""
Report service: financial statements from posted data.

Every report replays journal lines of POSTED and REVERSED
entries; drafts and cancelled entries never count. Reports
only read: they neither lock nor write, and the same inputs
over the same posted data always give the same result.

Amounts are raw (debit - credit) inside this module and get the
account type's sign convention only when placed on a statement.
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ledger_engine.exceptions import (
    AccountNotFound,
    InvalidDateRange,
    LedgerIntegrityError,
)
from ledger_engine.models.account import Account
from ledger_engine.models.enums import (
    AccountType,
    CashFlowActivity,
    NormalBalance,
    REPORTABLE_STATUSES,
)
from ledger_engine.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_engine.money import ZERO, to_money
from ledger_engine.schemas.report import (
    BalanceMismatch,
    BalanceSheet,
    CashFlowItem,
    CashFlowSection,
    CashFlowStatement,
    GeneralLedger,
    GeneralLedgerAccount,
    GeneralLedgerLine,
    IncomeStatement,
    IntegrityReport,
    StatementLine,
    StatementSection,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_engine.services.cash_flow import CashFlowPolicy

logger = logging.getLogger(__name__)


def _check_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise InvalidDateRange(start_date, end_date)


def _section(title: str, lines: list[StatementLine]) -> StatementSection:
    return StatementSection(
        title=title,
        lines=lines,
        total=to_money(sum((line.amount for line in lines), ZERO)),
    )


class ReportService:

    def __init__(self, db: Session, cash_flow_policy: CashFlowPolicy | None = None):
        self.db = db
        self.cash_flow_policy = cash_flow_policy or CashFlowPolicy.from_settings()

    # --- Replay helpers ---

    def _movements(
        self,
        tenant_id: str,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        before: date | None = None,
    ) -> dict[int, Decimal]:
        """Raw movement per account over reportable lines in a window."""
        stmt = (
            select(
                JournalEntryLine.account_id,
                func.sum(JournalEntryLine.debit),
                func.sum(JournalEntryLine.credit),
            )
            .join(JournalEntry, JournalEntryLine.entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(REPORTABLE_STATUSES),
            )
            .group_by(JournalEntryLine.account_id)
        )
        if start_date is not None:
            stmt = stmt.where(JournalEntry.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(JournalEntry.date <= end_date)
        if before is not None:
            stmt = stmt.where(JournalEntry.date < before)

        return {
            account_id: to_money(debit) - to_money(credit)
            for account_id, debit, credit in self.db.execute(stmt).all()
        }

    def _accounts(self, tenant_id: str) -> dict[int, Account]:
        accounts = self.db.execute(
            select(Account)
            .where(Account.tenant_id == tenant_id)
            .order_by(Account.account_number)
        ).scalars().all()
        return {a.id: a for a in accounts}

    def _statement_lines(
        self,
        accounts: dict[int, Account],
        movements: dict[int, Decimal],
        account_type: AccountType,
    ) -> list[StatementLine]:
        """Non-zero accounts of one type, natural sign, by account number."""
        flip = account_type.normal_balance == NormalBalance.CREDIT
        lines = []
        for account in accounts.values():
            if account.account_type != account_type:
                continue
            raw = movements.get(account.id, ZERO)
            if raw == ZERO:
                continue
            lines.append(StatementLine(
                account_id=account.id,
                account_number=account.account_number,
                account_name=account.name,
                amount=-raw if flip else raw,
            ))
        return lines

    # --- Reports ---

    def trial_balance(self, tenant_id: str, as_of: date) -> TrialBalance:
        """
        Balance of every account with activity up to as_of.

        A positive raw balance goes in the debit column, a negative
        one in the credit column, whatever the account type. Zero
        balances are omitted.
        """
        accounts = self._accounts(tenant_id)
        movements = self._movements(tenant_id, end_date=as_of)

        rows = []
        for account in accounts.values():
            raw = movements.get(account.id, ZERO)
            if raw == ZERO:
                continue
            rows.append(TrialBalanceRow(
                account_id=account.id,
                account_number=account.account_number,
                account_name=account.name,
                account_type=account.account_type,
                debit=raw if raw > ZERO else to_money(ZERO),
                credit=-raw if raw < ZERO else to_money(ZERO),
            ))

        total_debit = to_money(sum((r.debit for r in rows), ZERO))
        total_credit = to_money(sum((r.credit for r in rows), ZERO))
        if total_debit != total_credit:
            logger.error(
                "Trial balance for tenant %s as of %s does not balance: "
                "debit=%s credit=%s",
                tenant_id, as_of, total_debit, total_credit,
            )
            raise LedgerIntegrityError(
                f"Trial balance does not balance: debit={total_debit}, "
                f"credit={total_credit}",
                tenant_id=tenant_id,
                as_of=as_of,
            )

        return TrialBalance(
            tenant_id=tenant_id,
            as_of=as_of,
            rows=rows,
            total_debit=total_debit,
            total_credit=total_credit,
            is_balanced=True,
        )

    def income_statement(
        self, tenant_id: str, start_date: date, end_date: date
    ) -> IncomeStatement:
        """Revenue and expense activity within [start_date, end_date]."""
        _check_range(start_date, end_date)
        accounts = self._accounts(tenant_id)
        movements = self._movements(
            tenant_id, start_date=start_date, end_date=end_date
        )

        revenue = _section(
            "Revenue",
            self._statement_lines(accounts, movements, AccountType.REVENUE),
        )
        expenses = _section(
            "Expenses",
            self._statement_lines(accounts, movements, AccountType.EXPENSE),
        )
        return IncomeStatement(
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            revenue=revenue,
            expenses=expenses,
            total_revenue=revenue.total,
            total_expense=expenses.total,
            net_income=revenue.total - expenses.total,
        )

    def balance_sheet(self, tenant_id: str, as_of: date) -> BalanceSheet:
        """
        Assets, liabilities and equity as of a date.

        Revenue and expense accounts are never closed into equity
        by a journal entry, so their accumulated net is shown as a
        retained earnings line in the equity section.
        """
        accounts = self._accounts(tenant_id)
        movements = self._movements(tenant_id, end_date=as_of)

        retained_earnings = to_money(ZERO - sum(
            (
                movements.get(a.id, ZERO)
                for a in accounts.values()
                if a.account_type in (AccountType.REVENUE, AccountType.EXPENSE)
            ),
            ZERO,
        ))

        equity_lines = self._statement_lines(
            accounts, movements, AccountType.EQUITY
        )
        if retained_earnings != ZERO:
            equity_lines.append(StatementLine(
                account_id=None,
                account_number="",
                account_name="Retained earnings",
                amount=retained_earnings,
            ))

        assets = _section(
            "Assets",
            self._statement_lines(accounts, movements, AccountType.ASSET),
        )
        liabilities = _section(
            "Liabilities",
            self._statement_lines(accounts, movements, AccountType.LIABILITY),
        )
        equity = _section("Equity", equity_lines)

        balance_check = assets.total == liabilities.total + equity.total
        if not balance_check:
            logger.error(
                "Balance sheet for tenant %s as of %s does not balance: "
                "assets=%s liabilities=%s equity=%s",
                tenant_id, as_of, assets.total, liabilities.total, equity.total,
            )

        return BalanceSheet(
            tenant_id=tenant_id,
            as_of=as_of,
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            total_assets=assets.total,
            total_liabilities=liabilities.total,
            total_equity=equity.total,
            retained_earnings=retained_earnings,
            balance_check=balance_check,
        )

    def cash_flow_statement(
        self, tenant_id: str, start_date: date, end_date: date
    ) -> CashFlowStatement:
        """
        Movement of cash accounts within [start_date, end_date].

        Each entry contributes its net effect on cash accounts,
        classified by the cash flow policy. Transfers between two
        cash accounts net to zero and are left out.
        """
        _check_range(start_date, end_date)
        policy = self.cash_flow_policy
        accounts = self._accounts(tenant_id)
        cash_ids = {a.id for a in accounts.values() if policy.is_cash(a)}

        opening = self._movements(tenant_id, before=start_date)
        opening_cash = to_money(
            sum((opening.get(i, ZERO) for i in cash_ids), ZERO)
        )

        rows = self.db.execute(
            select(JournalEntry, JournalEntryLine)
            .join(JournalEntryLine, JournalEntryLine.entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(REPORTABLE_STATUSES),
                JournalEntry.date >= start_date,
                JournalEntry.date <= end_date,
            )
            .order_by(
                JournalEntry.date,
                JournalEntry.sequence_number,
                JournalEntryLine.line_number,
            )
        ).all()

        by_entry: dict[int, tuple[JournalEntry, list[JournalEntryLine]]] = {}
        for entry, line in rows:
            by_entry.setdefault(entry.id, (entry, []))[1].append(line)

        items: dict[CashFlowActivity, list[CashFlowItem]] = defaultdict(list)
        for entry, lines in by_entry.values():
            net_cash = sum(
                (to_money(line.amount) for line in lines if line.account_id in cash_ids),
                ZERO,
            )
            if net_cash == ZERO:
                continue
            counterparts = [
                accounts[line.account_id]
                for line in lines
                if line.account_id not in cash_ids
            ]
            activity = policy.classify(entry, counterparts)
            items[activity].append(CashFlowItem(
                entry_id=entry.id,
                entry_number=entry.entry_number,
                date=entry.date,
                description=entry.description,
                amount=to_money(net_cash),
            ))

        sections = {
            activity: CashFlowSection(
                activity=activity,
                items=items[activity],
                total=to_money(
                    sum((i.amount for i in items[activity]), ZERO)
                ),
            )
            for activity in CashFlowActivity
        }
        net_cash_flow = to_money(sum((s.total for s in sections.values()), ZERO))

        return CashFlowStatement(
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            opening_cash=opening_cash,
            operating=sections[CashFlowActivity.OPERATING],
            investing=sections[CashFlowActivity.INVESTING],
            financing=sections[CashFlowActivity.FINANCING],
            net_cash_flow=net_cash_flow,
            closing_cash=opening_cash + net_cash_flow,
        )

    def general_ledger(
        self,
        tenant_id: str,
        start_date: date,
        end_date: date,
        account_id: int | None = None,
    ) -> GeneralLedger:
        """
        Per-account posted lines in a period with running balances.

        Accounts with neither an opening balance nor activity in
        the period are omitted unless asked for by id.
        """
        _check_range(start_date, end_date)
        accounts = self._accounts(tenant_id)
        if account_id is not None:
            if account_id not in accounts:
                raise AccountNotFound(account_id)
            accounts = {account_id: accounts[account_id]}

        opening = self._movements(tenant_id, before=start_date)

        stmt = (
            select(JournalEntry, JournalEntryLine)
            .join(JournalEntryLine, JournalEntryLine.entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(REPORTABLE_STATUSES),
                JournalEntry.date >= start_date,
                JournalEntry.date <= end_date,
                JournalEntryLine.account_id.in_(accounts),
            )
            .order_by(
                JournalEntry.date,
                JournalEntry.sequence_number,
                JournalEntryLine.line_number,
            )
        )
        lines_by_account: dict[int, list] = defaultdict(list)
        for entry, line in self.db.execute(stmt).all():
            lines_by_account[line.account_id].append((entry, line))

        ledgers = []
        for account in accounts.values():
            opening_balance = opening.get(account.id, ZERO)
            activity = lines_by_account.get(account.id, [])
            if account_id is None and not activity and opening_balance == ZERO:
                continue

            running = to_money(opening_balance)
            gl_lines = []
            for entry, line in activity:
                running += to_money(line.amount)
                gl_lines.append(GeneralLedgerLine(
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    date=entry.date,
                    description=line.description or entry.description,
                    debit=to_money(line.debit),
                    credit=to_money(line.credit),
                    running_balance=running,
                ))
            ledgers.append(GeneralLedgerAccount(
                account_id=account.id,
                account_number=account.account_number,
                account_name=account.name,
                account_type=account.account_type,
                opening_balance=to_money(opening_balance),
                lines=gl_lines,
                closing_balance=running,
            ))

        return GeneralLedger(
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            accounts=ledgers,
        )

    def account_activity(
        self,
        tenant_id: str,
        account_id: int,
        start_date: date,
        end_date: date,
    ) -> Decimal:
        """Net raw movement (debit - credit) of one account in a period."""
        _check_range(start_date, end_date)
        exists = self.db.execute(
            select(Account.id).where(
                Account.id == account_id, Account.tenant_id == tenant_id
            )
        ).scalar_one_or_none()
        if exists is None:
            raise AccountNotFound(account_id)
        movements = self._movements(
            tenant_id, start_date=start_date, end_date=end_date
        )
        return to_money(movements.get(account_id, ZERO))

    def check_integrity(self, tenant_id: str) -> IntegrityReport:
        """
        Compare stored balances against a full replay of the journal.

        Any difference means a balance was written outside the
        posting engine, and is logged at ERROR.
        """
        accounts = self._accounts(tenant_id)
        movements = self._movements(tenant_id)

        totals = self.db.execute(
            select(
                func.sum(JournalEntryLine.debit),
                func.sum(JournalEntryLine.credit),
            )
            .join(JournalEntry, JournalEntryLine.entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(REPORTABLE_STATUSES),
            )
        ).one()
        total_debits = to_money(totals[0])
        total_credits = to_money(totals[1])

        mismatches = []
        for account in accounts.values():
            stored = to_money(account.balance)
            posted = movements.get(account.id, to_money(ZERO))
            if stored != posted:
                mismatches.append(BalanceMismatch(
                    account_id=account.id,
                    account_number=account.account_number,
                    stored_balance=stored,
                    posted_balance=posted,
                ))

        difference = total_debits - total_credits
        is_balanced = difference == ZERO and not mismatches
        if not is_balanced:
            logger.error(
                "Integrity check failed for tenant %s: difference=%s, "
                "%d mismatched accounts",
                tenant_id, difference, len(mismatches),
            )

        return IntegrityReport(
            tenant_id=tenant_id,
            total_debits=total_debits,
            total_credits=total_credits,
            difference=difference,
            is_balanced=is_balanced,
            mismatched_accounts=mismatches,
        )
