"""
Audit sink: records ledger facts for an external audit trail.

The ledger emits a fact after each successful write. Recording
is fire-and-forget: a sink that fails is logged and ignored, the
ledger operation it describes has already committed.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from ledger_engine.models.audit_log import AuditLog
from ledger_engine.models.enums import AuditAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditFact:
    action: AuditAction
    entity_type: str  # "journal_entry" or "account"
    entity_id: str
    tenant_id: str
    actor_id: str | None
    details: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    def record(self, fact: AuditFact) -> None: ...


class LoggingAuditSink:
    """Writes each fact to the ledger_engine.audit logger."""

    def __init__(self):
        self._logger = logging.getLogger("ledger_engine.audit")

    def record(self, fact: AuditFact) -> None:
        self._logger.info(
            "%s %s %s",
            fact.action.value, fact.entity_type, fact.entity_id,
            extra={"audit": asdict(fact)},
        )


class DatabaseAuditSink:
    """
    Appends facts to the audit_log table.

    Uses its own session so an audit write can never join, or
    roll back, the ledger transaction it describes.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(self, fact: AuditFact) -> None:
        session = self.session_factory()
        try:
            session.add(AuditLog(
                action=fact.action.value,
                entity_type=fact.entity_type,
                entity_id=fact.entity_id,
                tenant_id=fact.tenant_id,
                actor_id=fact.actor_id,
                details=json.dumps(fact.details, default=str, sort_keys=True),
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def emit_audit(sink: AuditSink, fact: AuditFact) -> None:
    """Deliver a fact to the sink, logging rather than raising on failure."""
    try:
        sink.record(fact)
    except Exception:
        logger.exception(
            "Audit sink failed for %s on %s %s",
            fact.action.value, fact.entity_type, fact.entity_id,
        )
