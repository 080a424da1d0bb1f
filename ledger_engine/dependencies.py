"""
FastAPI dependencies shared by the routers.

Identity comes from request headers and is trusted as given:
authentication happens in front of this service.
"""

from dataclasses import dataclass

from fastapi import Header

from ledger_engine.models.base import SessionLocal
from ledger_engine.services.audit_service import AuditSink, DatabaseAuditSink
from ledger_engine.services.notification_service import (
    LoggingNotificationSink,
    NotificationSink,
)
from ledger_engine.services.report_cache import ReportCache


@dataclass(frozen=True)
class Identity:
    tenant_id: str
    actor_id: str


def get_identity(
    x_tenant_id: str = Header(min_length=1, max_length=64),
    x_actor_id: str = Header(default="system", min_length=1, max_length=64),
) -> Identity:
    return Identity(tenant_id=x_tenant_id, actor_id=x_actor_id)


# One cache per process, shared by every request
_report_cache = ReportCache()


def get_report_cache() -> ReportCache:
    return _report_cache


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink(SessionLocal)


def get_notification_sink() -> NotificationSink:
    return LoggingNotificationSink()
