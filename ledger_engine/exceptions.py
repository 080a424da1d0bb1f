"""
Ledger error taxonomy.

Every failure the ledger reports belongs to exactly one kind:

- validation: the request is wrong and the caller can fix it
- state_conflict: the transition is illegal from the current state
- not_found: the tenant/entity combination does not exist
- concurrency: contention on balances outlasted the retry budget
- integrity: posted data violates a ledger invariant (a bug)

The HTTP adapter maps each kind to a status code. Nothing here
knows about HTTP beyond that number.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""

    kind = "ledger_error"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "kind": self.kind,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


# --- Validation kind ---

class LedgerValidationError(LedgerError, ValueError):
    kind = "validation"
    status_code = 422


class UnbalancedEntry(LedgerValidationError):
    def __init__(self, debit: Decimal, credit: Decimal):
        super().__init__(
            f"Entry does not balance: debit={debit}, credit={credit}",
            debit=debit,
            credit=credit,
        )
        self.debit = debit
        self.credit = credit


class TooFewLines(LedgerValidationError):
    def __init__(self, count: int):
        super().__init__(
            f"Journal entry needs at least 2 lines, got {count}",
            count=count,
        )


class InvalidLineShape(LedgerValidationError):
    def __init__(self, line_number: int, reason: str):
        super().__init__(
            f"Line {line_number} is invalid: {reason}",
            line_number=line_number,
        )


class DuplicateAccountNumber(LedgerValidationError):
    def __init__(self, account_number: str):
        super().__init__(
            f"Account number '{account_number}' already exists",
            account_number=account_number,
        )


class ParentNotFound(LedgerValidationError):
    def __init__(self, parent_id: int):
        super().__init__(
            f"Parent account {parent_id} not found",
            parent_id=parent_id,
        )


class InvalidParent(LedgerValidationError):
    def __init__(self, account_id: int, parent_id: int):
        super().__init__(
            f"Account {parent_id} cannot be the parent of account "
            f"{account_id}: it would create a cycle",
            account_id=account_id,
            parent_id=parent_id,
        )


class InvalidReversalDate(LedgerValidationError):
    def __init__(self, reversal_date, original_date):
        super().__init__(
            f"Reversal date {reversal_date} is before the original "
            f"entry date {original_date}",
            reversal_date=reversal_date,
            original_date=original_date,
        )


class InvalidDateRange(LedgerValidationError):
    def __init__(self, start_date, end_date):
        super().__init__(
            f"Start date {start_date} is after end date {end_date}",
            start_date=start_date,
            end_date=end_date,
        )


class DuplicateBudget(LedgerValidationError):
    def __init__(self, name: str, year: int):
        super().__init__(
            f"Budget {name!r} for {year} already exists",
            name=name,
            year=year,
        )


class DuplicateBudgetItem(LedgerValidationError):
    def __init__(self, account_id: int):
        super().__init__(
            f"Account {account_id} appears more than once in the budget",
            account_id=account_id,
        )


# --- State-conflict kind ---

class StateConflictError(LedgerError, ValueError):
    kind = "state_conflict"
    status_code = 409


class EntryNotDraft(StateConflictError):
    def __init__(self, entry_number: str, status):
        super().__init__(
            f"Entry {entry_number} is not a draft (status: {status.value})",
            entry_number=entry_number,
            status=status.value,
        )


class EntryNotPosted(StateConflictError):
    def __init__(self, entry_number: str, status):
        super().__init__(
            f"Entry {entry_number} is not posted (status: {status.value})",
            entry_number=entry_number,
            status=status.value,
        )


class AlreadyReversed(StateConflictError):
    def __init__(self, entry_number: str, reversal_entry_id: int):
        super().__init__(
            f"Entry {entry_number} is already reversed",
            entry_number=entry_number,
            reversal_entry_id=reversal_entry_id,
        )


class AccountInactive(StateConflictError):
    def __init__(self, account_number: str):
        super().__init__(
            f"Account {account_number} is not active",
            account_number=account_number,
        )


class AccountHasHistory(StateConflictError):
    def __init__(self, account_number: str, reason: str):
        super().__init__(
            f"Account {account_number} cannot be deleted: {reason}",
            account_number=account_number,
        )


class InvalidStatusTransition(StateConflictError):
    def __init__(self, current, target):
        super().__init__(
            f"Cannot transition from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


# --- Not-found kind ---

class NotFoundError(LedgerError, LookupError):
    kind = "not_found"
    status_code = 404


class AccountNotFound(NotFoundError):
    def __init__(self, account_id):
        super().__init__(
            f"Account {account_id} not found", account_id=account_id
        )


class EntryNotFound(NotFoundError):
    def __init__(self, entry_id):
        super().__init__(
            f"Journal entry {entry_id} not found", entry_id=entry_id
        )


class BudgetNotFound(NotFoundError):
    def __init__(self, budget_id):
        super().__init__(
            f"Budget {budget_id} not found", budget_id=budget_id
        )


# --- Concurrency kind ---

class ConcurrencyConflict(LedgerError):
    """Contention did not clear within the retry budget. Safe to retry."""

    kind = "concurrency"
    status_code = 503

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"{operation} aborted after {attempts} attempts due to "
            f"concurrent updates; retry the request",
            operation=operation,
            attempts=attempts,
        )


# --- Integrity kind ---

class LedgerIntegrityError(LedgerError):
    """Posted data violates a ledger invariant. Never expected."""

    kind = "integrity"
    status_code = 500
