"""
Cash flow classification policy.

Decides which accounts hold cash and which activity an entry's
cash movement belongs to. The defaults come from settings; a
tenant with a different chart of accounts supplies its own
policy to the report service.
"""

from dataclasses import dataclass, field
from typing import Iterable

from ledger_engine.config import Settings, get_settings
from ledger_engine.models.account import Account
from ledger_engine.models.enums import AccountType, CashFlowActivity
from ledger_engine.models.journal_entry import JournalEntry


@dataclass(frozen=True)
class CashFlowPolicy:
    cash_sub_types: frozenset[str] = frozenset({"CASH", "BANK"})
    cash_account_numbers: frozenset[str] = field(default_factory=frozenset)
    investing_sub_types: frozenset[str] = field(default_factory=frozenset)
    financing_sub_types: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CashFlowPolicy":
        settings = settings or get_settings()
        return cls(
            cash_sub_types=_upper(settings.CASH_ACCOUNT_SUB_TYPES),
            cash_account_numbers=frozenset(settings.CASH_ACCOUNT_NUMBERS),
            investing_sub_types=_upper(settings.INVESTING_SUB_TYPES),
            financing_sub_types=_upper(settings.FINANCING_SUB_TYPES),
        )

    def is_cash(self, account: Account) -> bool:
        if account.account_number in self.cash_account_numbers:
            return True
        return (
            account.account_type == AccountType.ASSET
            and (account.sub_type or "").upper() in self.cash_sub_types
        )

    def classify(
        self, entry: JournalEntry, counterparts: Iterable[Account]
    ) -> CashFlowActivity:
        """
        Classify an entry's cash movement.

        An explicit tag on the entry wins. Otherwise the non-cash
        side decides: investing sub-types first, then financing
        sub-types or equity, else operating.
        """
        if entry.cash_flow_activity is not None:
            return entry.cash_flow_activity

        counterparts = list(counterparts)
        sub_types = {(a.sub_type or "").upper() for a in counterparts}
        if sub_types & self.investing_sub_types:
            return CashFlowActivity.INVESTING
        if sub_types & self.financing_sub_types or any(
            a.account_type == AccountType.EQUITY for a in counterparts
        ):
            return CashFlowActivity.FINANCING
        return CashFlowActivity.OPERATING


def _upper(values: Iterable[str]) -> frozenset[str]:
    return frozenset(v.upper() for v in values)
