"""
Entitlement Service - single entry point for entitlement checks in the app.

Provides:
- get_status(record)                 → Entitlement
- get_warnings(record)               → [WarningInfo]
- check_feature(record, feature_key) → GateDecision
- require_feature(record, feature_key) raises PremiumFeatureRequiredError
- check_habit_allowance(record, current_count) → HabitAllowance
- check_mini_game(record, game_id)   → GateDecision

Architecture:
- The resolver and gating policy are pure; this service owns the clock.
- Each public call reads the clock exactly once so every value in one
  response is derived from the same instant.
- Free-tier caps and notice thresholds come from the plan catalog.
- Fail-CLOSED: an absent record or missing dates deny premium access.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from src.entitlements.audit import (
    AccessDenialEvent,
    EntitlementAuditLogger,
    get_audit_logger,
)
from src.entitlements.errors import PremiumFeatureRequiredError
from src.entitlements.loader import EntitlementLoader, get_entitlement_loader
from src.entitlements.models import Entitlement, SubscriptionRecord
from src.entitlements.policy import (
    GateDecision,
    PremiumFeature,
    WarningInfo,
    can_create_habit,
    decide,
    get_subscription_warnings,
    mini_game_feature_key,
)
from src.entitlements.resolver import resolve_entitlement

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HabitAllowance:
    """Whether another habit may be created, and how many remain on the free tier."""
    allowed: bool
    current_count: int
    limit: int
    unlimited: bool
    remaining: Optional[int]  # None when unlimited

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "current_count": self.current_count,
            "limit": self.limit,
            "unlimited": self.unlimited,
            "remaining": self.remaining,
        }


class EntitlementService:
    """
    Resolves entitlements for the current user at a single instant.

    Usage:
        service = EntitlementService()
        decision = service.check_feature(record, "recurring_rewards", user_id="parent_42")
        if not decision.allowed:
            ...
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        loader: Optional[EntitlementLoader] = None,
        audit_logger: Optional[EntitlementAuditLogger] = None,
    ):
        """
        Initialize entitlement service.

        Args:
            clock: Callable returning the current time (defaults to UTC wall clock)
            loader: Plan catalog loader (defaults to the singleton)
            audit_logger: Denial audit logger (defaults to the singleton)
        """
        self._clock = clock or utc_now
        self._loader = loader
        self._audit_logger = audit_logger or get_audit_logger()

    @property
    def loader(self) -> EntitlementLoader:
        """Plan catalog (lazy loaded)."""
        if self._loader is None:
            self._loader = get_entitlement_loader()
        return self._loader

    def now(self) -> datetime:
        return self._clock()

    def get_status(
        self,
        record: Optional[SubscriptionRecord],
        now: Optional[datetime] = None,
    ) -> Entitlement:
        """
        Resolve the entitlement for a subscription snapshot.

        Args:
            record: Subscription snapshot or None
            now: Instant to resolve at (read from the clock when omitted)
        """
        return resolve_entitlement(record, now or self.now())

    def get_warnings(
        self,
        record: Optional[SubscriptionRecord],
        now: Optional[datetime] = None,
    ) -> List[WarningInfo]:
        """Subscription notices for the current user."""
        entitlement = self.get_status(record, now)
        return get_subscription_warnings(entitlement, self.loader.get_trial_warning_days())

    def check_feature(
        self,
        record: Optional[SubscriptionRecord],
        feature_key: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """
        Check premium feature access, auditing denials.

        Args:
            record: Subscription snapshot or None
            feature_key: Feature being gated
            user_id: Current user for the audit trail
            now: Instant to check at (read from the clock when omitted)

        Returns:
            GateDecision
        """
        entitlement = self.get_status(record, now)
        decision = decide(entitlement, feature_key, record)

        if decision.allowed:
            logger.debug(
                "Premium access granted",
                extra={"feature_key": feature_key, "status": decision.status.value},
            )
        else:
            self._audit_denial(decision, record, user_id)

        return decision

    def require_feature(
        self,
        record: Optional[SubscriptionRecord],
        feature_key: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """
        Like check_feature, but raise when access is denied.

        Raises:
            PremiumFeatureRequiredError: If the user has no premium access
        """
        decision = self.check_feature(record, feature_key, user_id=user_id, now=now)
        if not decision.allowed:
            raise PremiumFeatureRequiredError(
                feature=feature_key,
                subscription_status=decision.status.value,
                reason=decision.reason,
                days_left=decision.days_left,
                stored_status=_stored_status(record),
            )
        return decision

    def check_mini_game(
        self,
        record: Optional[SubscriptionRecord],
        game_id: str,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """Gate a premium mini-game; the game id is recorded for analytics only."""
        return self.check_feature(record, mini_game_feature_key(game_id), user_id=user_id, now=now)

    def check_habit_allowance(
        self,
        record: Optional[SubscriptionRecord],
        current_count: int,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> HabitAllowance:
        """
        Decide whether another habit may be created.

        Below the free-tier cap creation is always allowed. At the cap the
        user needs premium access, and a denial is audited against the
        unlimited-habits feature.
        """
        now = now or self.now()
        limit = self.loader.get_free_tier_limits().max_habits
        current_count = max(0, current_count)

        entitlement = resolve_entitlement(record, now)
        allowed = can_create_habit(record, now, current_count, limit)
        unlimited = entitlement.can_access_premium_features

        if not allowed:
            decision = decide(entitlement, PremiumFeature.UNLIMITED_HABITS.value, record)
            self._audit_denial(decision, record, user_id)

        return HabitAllowance(
            allowed=allowed,
            current_count=current_count,
            limit=limit,
            unlimited=unlimited,
            remaining=None if unlimited else max(0, limit - current_count),
        )

    def _audit_denial(
        self,
        decision: GateDecision,
        record: Optional[SubscriptionRecord],
        user_id: Optional[str],
    ) -> None:
        self._audit_logger.log_denial(AccessDenialEvent(
            feature_name=decision.feature_key,
            subscription_status=decision.status.value,
            user_id=user_id,
            stored_status=_stored_status(record),
            days_left=decision.days_left,
            reason=decision.reason,
        ))


def _stored_status(record: Optional[SubscriptionRecord]) -> Optional[str]:
    if record is None or record.subscription_status is None:
        return None
    return record.subscription_status.value
