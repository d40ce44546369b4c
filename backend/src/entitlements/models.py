"""
Entitlement models - canonical types for subscription entitlement derivation.

Provides:
- SubscriptionStatus: Closed set of stored subscription states
- SubscriptionPlan: Informational plan labels
- SubscriptionRecord: Read-only snapshot of a user's subscription fields
- Entitlement: Derived entitlement snapshot (never persisted)

The subscription record is owned by the backend. Everything loosely typed
about it (status strings, nullable date fields) is normalised here, at the
boundary, so the resolver only ever sees enums and aware datetimes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical enums, import from here
# ---------------------------------------------------------------------------

class SubscriptionStatus(str, Enum):
    """Subscription states stored by the backend and reported by the resolver."""
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Any) -> Optional["SubscriptionStatus"]:
        """
        Map a raw stored status to a SubscriptionStatus.

        Args:
            value: Raw status (string, enum member or None)

        Returns:
            SubscriptionStatus, or None when missing or unrecognised
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        status_lower = value.strip().lower()
        if status_lower == "canceled":
            return cls.CANCELLED

        try:
            return cls(status_lower)
        except ValueError:
            logger.debug("Unrecognised subscription status", extra={"status": value})
            return None


class SubscriptionPlan(str, Enum):
    """Plan labels. Informational only, never used for gating."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: Any) -> Optional["SubscriptionPlan"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Timestamp normalisation
# ---------------------------------------------------------------------------

def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an optional timestamp from a backend payload.

    Accepts datetime objects, ISO-8601 strings (a trailing "Z" is allowed)
    and epoch seconds. Anything else yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        try:
            return ensure_utc(value)
        except OverflowError:
            return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(raw))
        except (OverflowError, ValueError):
            logger.debug("Unparseable subscription timestamp", extra={"value": value})
            return None

    return None


# ---------------------------------------------------------------------------
# Value objects (frozen dataclasses)
# ---------------------------------------------------------------------------

_FIELD_ALIASES = {
    "subscription_status": ("subscriptionStatus", "subscription_status"),
    "trial_ends_at": ("trialEndsAt", "trial_ends_at"),
    "subscription_end_date": ("subscriptionEndDate", "subscription_end_date"),
    "subscription_plan": ("subscriptionPlan", "subscription_plan"),
}


def _lookup(data: Mapping[str, Any], field_name: str) -> Any:
    for key in _FIELD_ALIASES[field_name]:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True)
class SubscriptionRecord:
    """
    Read-only snapshot of a user's subscription fields.

    A status of None means the stored value was missing or unrecognised;
    the resolver treats it as matching no paid or trial state.
    """
    subscription_status: Optional[SubscriptionStatus] = None
    trial_ends_at: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    subscription_plan: Optional[SubscriptionPlan] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SubscriptionRecord":
        """
        Build a record from a backend user payload.

        Accepts camelCase (backend JSON) or snake_case keys. Never raises;
        bad values become None.
        """
        data = data or {}
        return cls(
            subscription_status=SubscriptionStatus.parse(_lookup(data, "subscription_status")),
            trial_ends_at=parse_timestamp(_lookup(data, "trial_ends_at")),
            subscription_end_date=parse_timestamp(_lookup(data, "subscription_end_date")),
            subscription_plan=SubscriptionPlan.parse(_lookup(data, "subscription_plan")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscription_status": self.subscription_status.value if self.subscription_status else None,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "subscription_end_date": (
                self.subscription_end_date.isoformat() if self.subscription_end_date else None
            ),
            "subscription_plan": self.subscription_plan.value if self.subscription_plan else None,
        }


@dataclass(frozen=True)
class Entitlement:
    """
    Derived entitlement snapshot for one (record, now) pair.

    Immutable, so it can be shared between consumers.
    """
    is_trial_active: bool
    is_premium_active: bool
    is_expired: bool
    can_access_premium_features: bool
    days_left: int
    status: SubscriptionStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_trial_active": self.is_trial_active,
            "is_premium_active": self.is_premium_active,
            "is_expired": self.is_expired,
            "can_access_premium_features": self.can_access_premium_features,
            "days_left": self.days_left,
            "status": self.status.value,
        }


NO_ENTITLEMENT = Entitlement(
    is_trial_active=False,
    is_premium_active=False,
    is_expired=True,
    can_access_premium_features=False,
    days_left=0,
    status=SubscriptionStatus.EXPIRED,
)
