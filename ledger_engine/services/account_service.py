"""
Account service: the chart of accounts.

Creates, reads and maintains accounts for a tenant. It never
touches Account.balance: balances change only when the posting
engine applies a journal entry.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_engine.exceptions import (
    AccountHasHistory,
    AccountNotFound,
    DuplicateAccountNumber,
    InvalidParent,
    ParentNotFound,
)
from ledger_engine.models.account import Account
from ledger_engine.models.budget import BudgetItem
from ledger_engine.models.enums import AuditAction
from ledger_engine.models.journal_entry import JournalEntryLine
from ledger_engine.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountFilter,
    AccountBalanceResponse,
    AccountNode,
)
from ledger_engine.services.audit_service import (
    AuditFact,
    AuditSink,
    LoggingAuditSink,
    emit_audit,
)
from ledger_engine.services.report_cache import ReportCache
from ledger_engine.services.unit_of_work import run_atomic

logger = logging.getLogger(__name__)


class AccountService:
    """
    All chart-of-accounts operations pass through this service.

    Every query is scoped to a tenant: an account id that exists
    under another tenant is reported as not found.
    """

    def __init__(
        self,
        db: Session,
        audit_sink: AuditSink | None = None,
        report_cache: ReportCache | None = None,
    ):
        self.db = db
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.report_cache = report_cache

    # --- Reads ---

    def get_account(self, tenant_id: str, account_id: int) -> Account:
        """Get an account by ID."""
        account = self.db.execute(
            select(Account).where(
                Account.id == account_id,
                Account.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if not account:
            raise AccountNotFound(account_id)
        return account

    def get_by_number(self, tenant_id: str, account_number: str) -> Account:
        account = self.db.execute(
            select(Account).where(
                Account.tenant_id == tenant_id,
                Account.account_number == account_number,
            )
        ).scalar_one_or_none()
        if not account:
            raise AccountNotFound(account_number)
        return account

    def list_accounts(
        self, tenant_id: str, filters: AccountFilter | None = None
    ) -> list[Account]:
        """List a tenant's accounts ordered by account number."""
        stmt = select(Account).where(Account.tenant_id == tenant_id)
        if filters:
            if filters.account_type is not None:
                stmt = stmt.where(Account.account_type == filters.account_type)
            if filters.is_active is not None:
                stmt = stmt.where(Account.is_active == filters.is_active)
            if filters.parent_id is not None:
                stmt = stmt.where(Account.parent_id == filters.parent_id)
            if filters.sub_type is not None:
                stmt = stmt.where(Account.sub_type == filters.sub_type)
        accounts = self.db.execute(
            stmt.order_by(Account.account_number)
        ).scalars().all()
        return list(accounts)

    def get_balance(
        self, tenant_id: str, account_id: int
    ) -> AccountBalanceResponse:
        account = self.get_account(tenant_id, account_id)
        return AccountBalanceResponse(
            account_id=account.id,
            account_number=account.account_number,
            account_type=account.account_type,
            balance=account.balance,
            natural_balance=account.natural_balance(),
        )

    def get_account_tree(self, tenant_id: str) -> list[AccountNode]:
        """
        Return the chart of accounts as a forest.

        rollup_balance is the account's own raw balance plus that
        of every descendant.
        """
        accounts = self.list_accounts(tenant_id)
        nodes = {
            a.id: AccountNode(
                id=a.id,
                account_number=a.account_number,
                name=a.name,
                account_type=a.account_type,
                is_active=a.is_active,
                balance=a.balance,
                rollup_balance=a.balance,
            )
            for a in accounts
        }
        roots = []
        for account in accounts:
            node = nodes[account.id]
            if account.parent_id in nodes:
                nodes[account.parent_id].children.append(node)
            else:
                roots.append(node)

        def rollup(node: AccountNode) -> Decimal:
            node.rollup_balance = node.balance + sum(
                (rollup(child) for child in node.children), Decimal("0")
            )
            return node.rollup_balance

        for root in roots:
            rollup(root)
        return roots

    # --- Writes ---

    def create_account(
        self,
        tenant_id: str,
        request: AccountCreate,
        actor_id: str | None = None,
    ) -> Account:
        """
        Create a new account with a zero balance.

        Raises DuplicateAccountNumber if the number is taken in
        this tenant, ParentNotFound if parent_id does not resolve
        to an account of the same tenant.
        """
        facts = []

        def operation() -> Account:
            facts.clear()
            if self._number_taken(tenant_id, request.account_number):
                raise DuplicateAccountNumber(request.account_number)

            if request.parent_id is not None:
                self._get_parent(tenant_id, request.parent_id)

            account = Account(
                tenant_id=tenant_id,
                account_number=request.account_number,
                name=request.name,
                account_type=request.account_type,
                sub_type=request.sub_type,
                description=request.description,
                parent_id=request.parent_id,
                balance=Decimal("0"),
                is_active=True,
            )
            self.db.add(account)
            try:
                self.db.flush()
            except IntegrityError as exc:
                # A concurrent create took the number after our check;
                # the parent was already resolved above
                raise DuplicateAccountNumber(request.account_number) from exc
            facts.append(self._fact(
                AuditAction.ACCOUNT_CREATED, account, actor_id,
                {
                    "account_number": request.account_number,
                    "account_type": request.account_type.value,
                },
            ))
            return account

        account = run_atomic(self.db, operation, name="create_account")
        self._emit(facts)
        logger.info(
            "Created account %s for tenant %s",
            request.account_number, tenant_id,
        )
        return account

    def update_account(
        self,
        tenant_id: str,
        account_id: int,
        request: AccountUpdate,
        actor_id: str | None = None,
    ) -> Account:
        """Update name, description, sub-type or parent."""
        changes = request.model_dump(exclude_unset=True)
        facts = []

        def operation() -> Account:
            facts.clear()
            account = self.get_account(tenant_id, account_id)
            if changes.get("parent_id") is not None:
                self._check_no_cycle(tenant_id, account, changes["parent_id"])
            for field_name, value in changes.items():
                setattr(account, field_name, value)
            self.db.flush()
            facts.append(self._fact(
                AuditAction.ACCOUNT_UPDATED, account, actor_id,
                {"changes": sorted(changes)},
            ))
            return account

        account = run_atomic(self.db, operation, name="update_account")
        if self.report_cache is not None:
            # Reports carry account names and cash-flow sub-types
            self.report_cache.invalidate(tenant_id)
        self._emit(facts)
        return account

    def deactivate(
        self, tenant_id: str, account_id: int, actor_id: str | None = None
    ) -> Account:
        """
        Block new usage of an account.

        Existing drafts that reference it are left alone; they
        fail with AccountInactive if someone tries to post them.
        """
        return self._set_active(
            tenant_id, account_id, False, actor_id,
            AuditAction.ACCOUNT_DEACTIVATED,
        )

    def activate(
        self, tenant_id: str, account_id: int, actor_id: str | None = None
    ) -> Account:
        return self._set_active(
            tenant_id, account_id, True, actor_id,
            AuditAction.ACCOUNT_ACTIVATED,
        )

    def delete_account(
        self, tenant_id: str, account_id: int, actor_id: str | None = None
    ) -> None:
        """
        Hard-delete an account that was never used.

        Any journal line, draft or posted, counts as history, and so
        does a budget item planned against it.
        """
        facts = []

        def operation() -> None:
            facts.clear()
            account = self.get_account(tenant_id, account_id)
            line_count = self.db.execute(
                select(func.count(JournalEntryLine.id)).where(
                    JournalEntryLine.account_id == account.id
                )
            ).scalar()
            if line_count:
                raise AccountHasHistory(
                    account.account_number,
                    f"{line_count} journal lines reference it",
                )
            child_count = self.db.execute(
                select(func.count(Account.id)).where(
                    Account.parent_id == account.id
                )
            ).scalar()
            if child_count:
                raise AccountHasHistory(
                    account.account_number,
                    f"it has {child_count} child accounts",
                )
            budget_count = self.db.execute(
                select(func.count(BudgetItem.id)).where(
                    BudgetItem.account_id == account.id
                )
            ).scalar()
            if budget_count:
                raise AccountHasHistory(
                    account.account_number,
                    f"{budget_count} budget items reference it",
                )
            facts.append(self._fact(
                AuditAction.ACCOUNT_DELETED, account, actor_id,
                {"account_number": account.account_number},
            ))
            self.db.delete(account)
            self.db.flush()

        run_atomic(self.db, operation, name="delete_account")
        self._emit(facts)

    # --- Helpers ---

    def _number_taken(self, tenant_id: str, account_number: str) -> bool:
        return self.db.execute(
            select(Account.id).where(
                Account.tenant_id == tenant_id,
                Account.account_number == account_number,
            )
        ).scalar_one_or_none() is not None

    def _get_parent(self, tenant_id: str, parent_id: int) -> Account:
        try:
            return self.get_account(tenant_id, parent_id)
        except AccountNotFound:
            raise ParentNotFound(parent_id) from None

    def _check_no_cycle(
        self, tenant_id: str, account: Account, parent_id: int
    ) -> None:
        """Walk up from the new parent; reaching the account is a cycle."""
        ancestor = self._get_parent(tenant_id, parent_id)
        seen = set()
        while ancestor is not None and ancestor.id not in seen:
            if ancestor.id == account.id:
                raise InvalidParent(account.id, parent_id)
            seen.add(ancestor.id)
            ancestor = ancestor.parent

    def _set_active(
        self,
        tenant_id: str,
        account_id: int,
        is_active: bool,
        actor_id: str | None,
        action: AuditAction,
    ) -> Account:
        facts = []

        def operation() -> Account:
            facts.clear()
            account = self.get_account(tenant_id, account_id)
            account.is_active = is_active
            self.db.flush()
            facts.append(self._fact(action, account, actor_id, {}))
            return account

        account = run_atomic(self.db, operation, name=action.value.lower())
        self._emit(facts)
        return account

    @staticmethod
    def _fact(
        action: AuditAction,
        account: Account,
        actor_id: str | None,
        details: dict,
    ) -> AuditFact:
        # Built inside the transaction: attributes expire on commit
        return AuditFact(
            action=action,
            entity_type="account",
            entity_id=str(account.id),
            tenant_id=account.tenant_id,
            actor_id=actor_id,
            details=details,
        )

    def _emit(self, facts: list[AuditFact]) -> None:
        for fact in facts:
            emit_audit(self.audit_sink, fact)
