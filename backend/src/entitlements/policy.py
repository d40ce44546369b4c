"""
Feature gating policy built on the entitlement resolver.

Every premium-labelled feature is gated the same way: access is granted
while the user is trialing, paid up, or cancelled but still inside the paid
period. Feature keys and game ids are carried for display and audit only.

Free-tier caps (e.g. "3 habits") are supplied by the caller.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.entitlements.models import Entitlement, SubscriptionRecord, SubscriptionStatus
from src.entitlements.resolver import resolve_entitlement


class PremiumFeature(str, Enum):
    """Premium-labelled features known to the app."""
    UNLIMITED_HABITS = "unlimited_habits"
    MINI_GAMES = "mini_games"
    RECURRING_REWARDS = "recurring_rewards"
    WEEKEND_CHALLENGES = "weekend_challenges"
    EXCLUSIVE_AVATARS = "exclusive_avatars"
    PROGRESS_INSIGHTS = "progress_insights"
    VOICE_REMINDERS = "voice_reminders"


MINI_GAME_PREFIX = "minigame_"


def mini_game_feature_key(game_id: str) -> str:
    return f"{MINI_GAME_PREFIX}{game_id}"


@dataclass(frozen=True)
class GateDecision:
    """Result of a feature gate check."""
    allowed: bool
    feature_key: str
    status: SubscriptionStatus
    days_left: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "feature_key": self.feature_key,
            "status": self.status.value,
            "days_left": self.days_left,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class WarningInfo:
    """Notice to display about the subscription state."""
    code: str
    message: str
    severity: str = "info"  # "info", "warning", "error"
    action_url: Optional[str] = None


def has_access(record: Optional[SubscriptionRecord], now: datetime) -> bool:
    """True when the user may use premium features at `now`."""
    return resolve_entitlement(record, now).can_access_premium_features


def requires_subscription(record: Optional[SubscriptionRecord], now: datetime) -> bool:
    """True when the user must subscribe before using premium features."""
    return not has_access(record, now)


def _denial_reason(record: Optional[SubscriptionRecord]) -> str:
    if record is None:
        return "Sign in to access premium features"
    if record.subscription_status == SubscriptionStatus.TRIAL:
        return "Your free trial has ended"
    if record.subscription_status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED):
        return "Your subscription has expired"
    return "A premium subscription is required"


def decide(
    entitlement: Entitlement,
    feature_key: str,
    record: Optional[SubscriptionRecord] = None,
) -> GateDecision:
    """Build a gate decision from an already resolved entitlement."""
    if entitlement.can_access_premium_features:
        return GateDecision(
            allowed=True,
            feature_key=feature_key,
            status=entitlement.status,
            days_left=entitlement.days_left,
        )
    return GateDecision(
        allowed=False,
        feature_key=feature_key,
        status=entitlement.status,
        days_left=entitlement.days_left,
        reason=_denial_reason(record),
    )


def check_feature_access(
    record: Optional[SubscriptionRecord],
    now: datetime,
    feature_key: str,
) -> GateDecision:
    """
    Check access to a premium feature.

    Args:
        record: Subscription snapshot or None
        now: Current time supplied by the caller
        feature_key: Feature being gated (display/audit only)

    Returns:
        GateDecision
    """
    return decide(resolve_entitlement(record, now), feature_key, record)


def can_create_habit(
    record: Optional[SubscriptionRecord],
    now: datetime,
    current_count: int,
    free_tier_limit: int,
) -> bool:
    """
    Whether another habit may be created.

    Below the free-tier cap anyone may create habits; at or above it the
    user needs premium access.
    """
    if current_count < max(0, free_tier_limit):
        return True
    return has_access(record, now)


def can_play_mini_game(
    record: Optional[SubscriptionRecord],
    now: datetime,
    game_id: str,
) -> GateDecision:
    """Gate a premium mini-game. The game id does not affect the outcome."""
    return check_feature_access(record, now, mini_game_feature_key(game_id))


# ---------------------------------------------------------------------------
# Subscription notices
# ---------------------------------------------------------------------------

WARNING_MESSAGES: Dict[str, WarningInfo] = {
    "trial_active": WarningInfo(
        code="trial_active",
        message="You're on a free trial. Upgrade any time to keep premium features.",
        severity="info",
        action_url="/subscription",
    ),
    "trial_ending_soon": WarningInfo(
        code="trial_ending_soon",
        message="Your free trial is almost over. Upgrade to keep unlimited habits and mini-games.",
        severity="warning",
        action_url="/subscription",
    ),
    "subscription_cancelled": WarningInfo(
        code="subscription_cancelled",
        message="Your subscription is cancelled. You have access until the end of your billing period.",
        severity="info",
        action_url="/subscription",
    ),
    "subscription_expired": WarningInfo(
        code="subscription_expired",
        message="Your premium access has ended. Subscribe to unlock premium features again.",
        severity="error",
        action_url="/subscription",
    ),
}


def get_subscription_warnings(
    entitlement: Entitlement,
    trial_warning_days: int = 3,
) -> List[WarningInfo]:
    """
    Notices to show for a resolved entitlement.

    Args:
        entitlement: Resolved entitlement
        trial_warning_days: Trials with this many days left or fewer are "ending soon"

    Returns:
        List of WarningInfo (empty for active subscriptions)
    """
    if entitlement.status == SubscriptionStatus.TRIAL:
        if entitlement.days_left <= trial_warning_days:
            return [WARNING_MESSAGES["trial_ending_soon"]]
        return [WARNING_MESSAGES["trial_active"]]

    if entitlement.status == SubscriptionStatus.CANCELLED:
        return [WARNING_MESSAGES["subscription_cancelled"]]

    if entitlement.status == SubscriptionStatus.EXPIRED:
        return [WARNING_MESSAGES["subscription_expired"]]

    return []
