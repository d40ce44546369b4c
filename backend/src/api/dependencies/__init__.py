"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from src.api.dependencies.entitlements import (
    get_clock,
    get_entitlement_service,
    get_plan_catalog,
    get_subscription_record,
    get_current_user_id,
    require_mini_game_access,
)

__all__ = [
    "get_clock",
    "get_entitlement_service",
    "get_plan_catalog",
    "get_subscription_record",
    "get_current_user_id",
    "require_mini_game_access",
]
