"""
Entitlement Audit Logger - Log premium access denials.

Provides:
- AccessDenialEvent: Structured event for access denials
- EntitlementAuditLogger: Thread-safe audit logger with de-duplication

Each denial records the feature, the resolved subscription status, the raw
stored status and the user (when signed in). Events go to the dedicated
"entitlements.audit" logger so they can be routed separately.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, Any
from threading import Lock

logger = logging.getLogger(__name__)

# Dedicated audit logger for structured logging
audit_logger = logging.getLogger("entitlements.audit")

ANONYMOUS_USER = "anonymous"


@dataclass
class AccessDenialEvent:
    """Structured event for a premium access denial."""

    feature_name: str
    subscription_status: str
    user_id: Optional[str] = None
    stored_status: Optional[str] = None
    days_left: int = 0
    reason: Optional[str] = None
    endpoint: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    extra_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


class EntitlementAuditLogger:
    """
    Audit logger for premium access denials.

    Repeated denials of the same feature for the same user inside the
    aggregation window are logged once.

    Usage:
        audit = EntitlementAuditLogger()
        audit.log_denial(AccessDenialEvent(
            feature_name="unlimited_habits",
            subscription_status="expired",
            user_id="parent_42",
        ))
    """

    def __init__(self, aggregation_window_seconds: int = 60):
        self._aggregation_window_seconds = aggregation_window_seconds
        self._recent_denials: Dict[str, float] = {}
        self._aggregation_lock = Lock()

    def log_denial(self, event: AccessDenialEvent) -> bool:
        """
        Log an access denial event.

        Args:
            event: AccessDenialEvent

        Returns:
            True if the event was written, False if it was aggregated away
        """
        agg_key = f"{event.user_id or ANONYMOUS_USER}:{event.feature_name}"
        if not self._check_aggregation(agg_key):
            return False

        audit_logger.warning(
            "access_denied",
            extra={
                "event_type": "access_denied",
                "audit_data": event.to_dict(),
            }
        )

        logger.info(
            f"Premium access denied: {event.feature_name} for user {event.user_id or ANONYMOUS_USER}",
            extra={
                "feature_name": event.feature_name,
                "subscription_status": event.subscription_status,
                "reason": event.reason,
            }
        )
        return True

    def _check_aggregation(self, key: str) -> bool:
        """
        Check if event should be logged (aggregation).

        Returns False if this key was logged within the aggregation window.
        """
        now = datetime.now(timezone.utc).timestamp()

        with self._aggregation_lock:
            cutoff = now - self._aggregation_window_seconds
            self._recent_denials = {
                k: v for k, v in self._recent_denials.items()
                if v > cutoff
            }

            if key in self._recent_denials:
                return False

            self._recent_denials[key] = now
            return True


# Module-level singleton accessor
_audit_logger_instance: Optional[EntitlementAuditLogger] = None
_audit_logger_lock = Lock()


def get_audit_logger() -> EntitlementAuditLogger:
    """Get the singleton audit logger instance."""
    global _audit_logger_instance
    if _audit_logger_instance is None:
        with _audit_logger_lock:
            if _audit_logger_instance is None:
                _audit_logger_instance = EntitlementAuditLogger()
    return _audit_logger_instance


def reset_audit_logger() -> None:
    """
    Reset the audit logger singleton (for testing).

    WARNING: Only use in tests!
    """
    global _audit_logger_instance
    _audit_logger_instance = None
