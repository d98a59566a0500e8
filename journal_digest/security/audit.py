"""Audit trail hooks. Persistence belongs to the caller's audit store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from journal_digest.config.logger import get_logger
from journal_digest.config.settings import settings

logger = get_logger(__name__)

AuditAction = Literal["CREATE", "READ", "UPDATE", "DELETE", "SHARE", "DENY"]

# Details may only carry counts, flags and identifiers, never entry text.
_ALLOWED_DETAIL_TYPES = (bool, int, float, str, type(None))
_MAX_DETAIL_STR = 64


class AuditEvent(BaseModel):
    action: AuditAction
    resource: str
    resource_id: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(ABC):
    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        ...


class LoggingAuditSink(AuditSink):
    """Writes one structured line per event to the audit logger."""

    def __init__(self) -> None:
        self._logger = get_logger("audit")

    async def record(self, event: AuditEvent) -> None:
        self._logger.info(
            "[audit] action=%s resource=%s resource_id=%s user=%s details=%s",
            event.action,
            event.resource,
            event.resource_id or "-",
            event.user_id or "-",
            event.details,
        )


def _scrub_details(details: dict[str, Any] | None) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key, value in (details or {}).items():
        if isinstance(value, (list, tuple, set)):
            value = [str(v)[:_MAX_DETAIL_STR] for v in value]
        elif not isinstance(value, _ALLOWED_DETAIL_TYPES):
            continue
        elif isinstance(value, str):
            value = value[:_MAX_DETAIL_STR]
        clean[key] = value
    return clean


_sink: AuditSink = LoggingAuditSink()


def set_audit_sink(sink: AuditSink) -> None:
    global _sink
    _sink = sink


def get_audit_sink() -> AuditSink:
    return _sink


async def record_audit(
    action: AuditAction,
    resource: str,
    resource_id: str | None = None,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Record an audit event. A failing sink is logged and never breaks the caller."""
    if not settings.AUDIT_LOG_ENABLED:
        return
    event = AuditEvent(
        action=action,
        resource=resource,
        resource_id=resource_id,
        user_id=user_id,
        details=_scrub_details(details),
    )
    try:
        await _sink.record(event)
    except Exception:
        logger.exception("[audit] failed to record %s %s", action, resource)
