"""
Subscription API routes for premium entitlement checks.

These are read-only: nothing here changes subscription state. Signed-out
visitors get an "expired" entitlement rather than an error.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.dependencies.entitlements import (
    get_current_user_id,
    get_entitlement_service,
    get_plan_catalog,
    get_subscription_record,
    require_mini_game_access,
)
from src.entitlements.loader import EntitlementLoader
from src.entitlements.models import SubscriptionRecord
from src.entitlements.policy import GateDecision
from src.entitlements.service import EntitlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


# Request/Response models
class WarningResponse(BaseModel):
    """Subscription notice for the UI."""
    code: str
    message: str
    severity: str
    action_url: Optional[str] = None


class SubscriptionStatusResponse(BaseModel):
    """Derived entitlement for the current user."""
    status: str
    is_trial_active: bool
    is_premium_active: bool
    is_expired: bool
    can_access_premium_features: bool
    days_left: int
    subscription_plan: Optional[str] = None
    trial_ends_at: Optional[str] = None
    subscription_end_date: Optional[str] = None
    warnings: List[WarningResponse] = Field(default_factory=list)


class FeatureAccessRequest(BaseModel):
    """Request to check a premium feature."""
    feature: str = Field(..., min_length=1, description="Feature key to check")


class FeatureAccessResponse(BaseModel):
    """Result of a premium feature check."""
    feature: str
    has_access: bool
    status: str
    days_left: int
    reason: Optional[str] = None


class HabitAllowanceResponse(BaseModel):
    """Whether another habit may be created."""
    allowed: bool
    current_count: int
    limit: int
    unlimited: bool
    remaining: Optional[int] = None


class MiniGameAccessResponse(BaseModel):
    """Granted mini-game access."""
    game_id: str
    has_access: bool
    status: str
    days_left: int


class PlanResponse(BaseModel):
    """Plan information."""
    id: str
    name: str
    tier: int
    price_cents: int
    currency: str
    interval: str
    interval_count: int
    features: List[str]
    popular: bool = False
    savings: Optional[str] = None
    badge: Optional[str] = None


class TrialResponse(BaseModel):
    days: int
    features: List[str]


class PlansListResponse(BaseModel):
    """Plan catalog."""
    plans: List[PlanResponse]
    trial: TrialResponse
    free_tier_max_habits: int
    premium_features: dict


def _decision_response(decision: GateDecision) -> FeatureAccessResponse:
    return FeatureAccessResponse(
        feature=decision.feature_key,
        has_access=decision.allowed,
        status=decision.status.value,
        days_left=decision.days_left,
        reason=decision.reason,
    )


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    record: Optional[SubscriptionRecord] = Depends(get_subscription_record),
    service: EntitlementService = Depends(get_entitlement_service),
):
    """
    Get the current user's subscription status.

    The entitlement and its notices are derived from one clock reading.
    """
    now = service.now()
    entitlement = service.get_status(record, now)
    warnings = service.get_warnings(record, now)
    raw = record.to_dict() if record else {}

    return SubscriptionStatusResponse(
        **entitlement.to_dict(),
        subscription_plan=raw.get("subscription_plan"),
        trial_ends_at=raw.get("trial_ends_at"),
        subscription_end_date=raw.get("subscription_end_date"),
        warnings=[
            WarningResponse(
                code=w.code,
                message=w.message,
                severity=w.severity,
                action_url=w.action_url,
            )
            for w in warnings
        ],
    )


@router.post("/check-feature-access", response_model=FeatureAccessResponse)
async def check_feature_access(
    access_request: FeatureAccessRequest,
    record: Optional[SubscriptionRecord] = Depends(get_subscription_record),
    user_id: Optional[str] = Depends(get_current_user_id),
    service: EntitlementService = Depends(get_entitlement_service),
):
    """
    Check whether the current user may use a premium feature.

    Always returns 200; the answer is in has_access.
    """
    decision = service.check_feature(record, access_request.feature, user_id=user_id)
    return _decision_response(decision)


@router.get("/habit-allowance", response_model=HabitAllowanceResponse)
async def get_habit_allowance(
    current_count: int = Query(..., ge=0, description="Habits the family already has"),
    record: Optional[SubscriptionRecord] = Depends(get_subscription_record),
    user_id: Optional[str] = Depends(get_current_user_id),
    service: EntitlementService = Depends(get_entitlement_service),
):
    """Check whether another habit may be created under the free-tier cap."""
    allowance = service.check_habit_allowance(record, current_count, user_id=user_id)
    return HabitAllowanceResponse(**allowance.to_dict())


@router.get("/mini-games/{game_id}/access", response_model=MiniGameAccessResponse)
async def get_mini_game_access(
    game_id: str,
    decision: GateDecision = Depends(require_mini_game_access),
):
    """
    Confirm access to a premium mini-game.

    Returns 402 Payment Required when the user has no premium access.
    """
    return MiniGameAccessResponse(
        game_id=game_id,
        has_access=decision.allowed,
        status=decision.status.value,
        days_left=decision.days_left,
    )


@router.get("/plans", response_model=PlansListResponse)
async def list_plans(
    loader: EntitlementLoader = Depends(get_plan_catalog),
):
    """List purchasable plans, trial details and premium features."""
    trial = loader.get_trial_config()
    return PlansListResponse(
        plans=[PlanResponse(**plan.to_dict()) for plan in loader.get_all_plans()],
        trial=TrialResponse(days=trial.days, features=trial.features),
        free_tier_max_habits=loader.get_free_tier_limits().max_habits,
        premium_features={
            key: loader.get_feature_description(key)
            for key in loader.get_premium_feature_keys()
        },
    )
