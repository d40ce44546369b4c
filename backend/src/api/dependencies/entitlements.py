"""
Entitlement check dependencies.

Provides reusable FastAPI dependencies for subscription checks:
- get_clock: the request clock (override in tests)
- get_plan_catalog: the plan catalog loader
- get_entitlement_service: EntitlementService bound to the clock
- get_subscription_record: current user's subscription snapshot (or None)
- require_mini_game_access: 402 unless the user may play a premium mini-game
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from src.entitlements.errors import PremiumFeatureRequiredError
from src.entitlements.loader import EntitlementLoader, get_entitlement_loader
from src.entitlements.models import SubscriptionRecord
from src.entitlements.policy import GateDecision, mini_game_feature_key
from src.entitlements.service import Clock, EntitlementService, utc_now
from src.platform.user_context import get_user_context


logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    """Clock used for entitlement checks."""
    return utc_now


def get_plan_catalog() -> EntitlementLoader:
    return get_entitlement_loader()


def get_entitlement_service(clock: Clock = Depends(get_clock)) -> EntitlementService:
    return EntitlementService(clock=clock)


def get_subscription_record(request: Request) -> Optional[SubscriptionRecord]:
    """Subscription snapshot of the signed-in user, or None when signed out."""
    user_ctx = get_user_context(request)
    return user_ctx.subscription if user_ctx else None


def get_current_user_id(request: Request) -> Optional[str]:
    user_ctx = get_user_context(request)
    return user_ctx.user_id if user_ctx else None


def require_mini_game_access(
    game_id: str,
    record: Optional[SubscriptionRecord] = Depends(get_subscription_record),
    user_id: Optional[str] = Depends(get_current_user_id),
    service: EntitlementService = Depends(get_entitlement_service),
) -> GateDecision:
    """
    Dependency to check premium mini-game access.

    Raises 402 Payment Required if the user has no premium access.
    Returns the gate decision if allowed.
    """
    try:
        return service.require_feature(record, mini_game_feature_key(game_id), user_id=user_id)
    except PremiumFeatureRequiredError as e:
        logger.warning(
            "Mini-game access denied - premium required",
            extra={
                "user_id": user_id,
                "game_id": game_id,
                "subscription_status": e.subscription_status,
            },
        )
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
