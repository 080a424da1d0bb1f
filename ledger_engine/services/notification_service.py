"""
Notification sink for posting and reversal events.

Like auditing, notification is outside the ledger transaction:
a failed delivery is logged and does not affect the posting.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerNotification:
    event: str  # "journal_entry.posted" or "journal_entry.reversed"
    tenant_id: str
    entry_id: int
    entry_number: str
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    def send(self, notification: LedgerNotification) -> None: ...


class LoggingNotificationSink:
    def send(self, notification: LedgerNotification) -> None:
        logger.info(
            "Notification %s for %s (tenant %s)",
            notification.event,
            notification.entry_number,
            notification.tenant_id,
        )


def notify(sink: NotificationSink | None, notification: LedgerNotification) -> None:
    if sink is None:
        return
    try:
        sink.send(notification)
    except Exception:
        logger.exception(
            "Notification sink failed for %s on %s",
            notification.event, notification.entry_number,
        )
