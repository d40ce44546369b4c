"""
Subscription entitlement system for Habit Heroes premium features.

This module provides:
- resolve_entitlement: Pure derivation of trial/active/cancelled/expired status
- has_access / requires_subscription: Boolean premium gates
- check_feature_access / can_create_habit / can_play_mini_game: Feature gates
- SubscriptionRecord: Boundary-parsed snapshot of a user's subscription fields
- EntitlementService: Clock-owning service used by the API layer
- EntitlementLoader: Plan catalog from config/plans.json
- EntitlementAuditLogger: Log premium access denials

Status precedence: trial → active → cancelled → expired
Missing or unparseable data never grants access (fail-closed).
"""

from src.entitlements.models import (
    SubscriptionStatus,
    SubscriptionPlan,
    SubscriptionRecord,
    Entitlement,
)
from src.entitlements.resolver import resolve_entitlement, trial_days_left
from src.entitlements.policy import (
    PremiumFeature,
    GateDecision,
    WarningInfo,
    has_access,
    requires_subscription,
    check_feature_access,
    can_create_habit,
    can_play_mini_game,
    get_subscription_warnings,
)
from src.entitlements.service import EntitlementService, HabitAllowance, utc_now
from src.entitlements.loader import EntitlementLoader, PlanDefinition, get_entitlement_loader
from src.entitlements.errors import (
    EntitlementError,
    EntitlementConfigError,
    PremiumFeatureRequiredError,
)
from src.entitlements.audit import EntitlementAuditLogger, AccessDenialEvent

__all__ = [
    "SubscriptionStatus",
    "SubscriptionPlan",
    "SubscriptionRecord",
    "Entitlement",
    "resolve_entitlement",
    "trial_days_left",
    "PremiumFeature",
    "GateDecision",
    "WarningInfo",
    "has_access",
    "requires_subscription",
    "check_feature_access",
    "can_create_habit",
    "can_play_mini_game",
    "get_subscription_warnings",
    "EntitlementService",
    "HabitAllowance",
    "utc_now",
    "EntitlementLoader",
    "PlanDefinition",
    "get_entitlement_loader",
    "EntitlementError",
    "EntitlementConfigError",
    "PremiumFeatureRequiredError",
    "EntitlementAuditLogger",
    "AccessDenialEvent",
]
