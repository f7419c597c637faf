"""
Audit Subpackage for Care Consent

Append-only audit sinks that record human-readable descriptions of
consent policy events. The engine writes to a sink and never reads it back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Optional, Dict, Any, List
from enum import Enum

import structlog

from ..constants import AuditActions
from ..exceptions import AuditLogError
from ..utils.ids import generate_audit_id

logger = structlog.get_logger(__name__)


class AuditAction(str, Enum):
    """Consent audit actions"""
    GRANTED = AuditActions.GRANTED
    REVOKED = AuditActions.REVOKED
    UPDATED = AuditActions.UPDATED
    VIEWED = AuditActions.VIEWED


@dataclass
class ConsentAuditEvent:
    """
    Represents a consent policy event for the audit trail.

    Attributes:
        action: What happened (granted, revoked, updated, viewed)
        category: Consent category affected
        details: Human-readable description
        granted_to: Display name of the grantee (if applicable)
        user_id: Owner of the consent preferences
        timestamp: When the event occurred
        event_id: Unique identifier for the event
    """
    action: AuditAction
    category: str
    details: str
    granted_to: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: str = field(default_factory=generate_audit_id)

    @property
    def audit_action(self) -> str:
        """Audit log action identifier, e.g. ``consent_granted``"""
        return f"consent_{self.action.value}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert audit event to dictionary for logging/storage"""
        return {
            "event_id": self.event_id,
            "action": self.audit_action,
            "category": self.category,
            "granted_to": self.granted_to,
            "user_id": self.user_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


def create_consent_event(
    action: AuditAction,
    category: str,
    details: Optional[str] = None,
    granted_to: Optional[str] = None,
    user_id: Optional[str] = None
) -> ConsentAuditEvent:
    """
    Create a consent audit event.

    Args:
        action: Consent action performed
        category: Consent category affected
        details: Description; defaults to "Consent <action> for <category>"
        granted_to: Display name of the grantee
        user_id: Owner of the consent preferences

    Returns:
        ConsentAuditEvent ready to be written to a sink
    """
    return ConsentAuditEvent(
        action=action,
        category=category,
        details=details or f"Consent {action.value} for {category}",
        granted_to=granted_to,
        user_id=user_id,
    )


class AuditSink(ABC):
    """Append-only destination for consent audit events"""

    @abstractmethod
    def log_consent_change(self, event: ConsentAuditEvent) -> None:
        """Record ``event``; raises AuditLogError on failure"""


class InMemoryAuditSink(AuditSink):
    """In-memory audit log, newest last"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._events: List[ConsentAuditEvent] = []

    def log_consent_change(self, event: ConsentAuditEvent) -> None:
        self._events.append(event)
        if len(self._events) > self.max_entries:
            del self._events[:len(self._events) - self.max_entries]

    def get_events(self, action: Optional[AuditAction] = None,
                   category: Optional[str] = None,
                   user_id: Optional[str] = None,
                   limit: int = 100) -> List[ConsentAuditEvent]:
        """Get filtered audit events, newest first"""
        events = self._events

        if action:
            events = [e for e in events if e.action == action]

        if category:
            events = [e for e in events if e.category == category]

        if user_id:
            events = [e for e in events if e.user_id == user_id]

        return list(reversed(events))[:limit]

    def __len__(self) -> int:
        return len(self._events)


class StructlogAuditSink(AuditSink):
    """Writes audit events to the structured application log"""

    def __init__(self, logger_name: str = "care_consent.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log_consent_change(self, event: ConsentAuditEvent) -> None:
        try:
            self._logger.info("Consent audit event", **event.to_dict())
        except Exception as e:
            raise AuditLogError(f"Failed to write audit event: {e}", action=event.audit_action) from e


__all__ = [
    "AuditAction",
    "ConsentAuditEvent",
    "create_consent_event",
    "AuditSink",
    "InMemoryAuditSink",
    "StructlogAuditSink",
]
