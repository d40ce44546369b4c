"""
Structured error classes for entitlement enforcement.
"""

from typing import Optional
from fastapi import status


class EntitlementError(Exception):
    """Base exception for entitlement errors."""
    pass


class EntitlementConfigError(EntitlementError):
    """Raised when the plan catalog is missing required fields or malformed."""
    pass


class PremiumFeatureRequiredError(EntitlementError):
    """
    Raised when a premium feature is requested without premium access.

    Includes machine-readable reason codes for programmatic handling.
    """

    def __init__(
        self,
        feature: str,
        subscription_status: str,
        reason: Optional[str] = None,
        days_left: int = 0,
        stored_status: Optional[str] = None,
        http_status: int = status.HTTP_402_PAYMENT_REQUIRED,
    ):
        """
        Initialize premium feature error.

        Args:
            feature: Feature key that was denied
            subscription_status: Resolved subscription status (expired in practice)
            reason: Human-readable reason
            days_left: Trial days left at the time of the check
            stored_status: Raw status stored on the user record, if any
            http_status: HTTP status code (default 402)
        """
        self.feature = feature
        self.subscription_status = subscription_status
        self.reason = reason or "A premium subscription is required"
        self.days_left = days_left
        self.stored_status = stored_status
        self.http_status = http_status
        super().__init__(f"Feature '{feature}' denied: {self.reason}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "error": "premium_required",
            "feature": self.feature,
            "reason": self.reason,
            "subscription_status": self.subscription_status,
            "days_left": self.days_left,
            "upgrade_url": "/subscription",
            "machine_readable": {
                "code": self._get_reason_code(),
                "subscription_status": self.subscription_status,
                "feature": self.feature,
            },
        }

    def _get_reason_code(self) -> str:
        """Get machine-readable reason code."""
        if self.stored_status == "trial":
            return "trial_expired"
        elif self.stored_status in ("active", "cancelled"):
            return "subscription_expired"
        else:
            return "subscription_required"
