"""
Entitlement Loader - Load the plan catalog from config/plans.json.

Provides:
- PlanDefinition: Dataclass describing a purchasable plan
- TrialConfig: Free trial settings
- FreeTierLimits: Caps applied to users without premium access
- EntitlementLoader: Singleton loader for the plan catalog

The catalog is informational and supplies caller-side configuration
(free-tier caps, notice thresholds). It never decides access on its own;
see src.entitlements.resolver for that.
"""

import json
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from threading import Lock

from src.entitlements.errors import EntitlementConfigError
from src.entitlements.policy import PremiumFeature

logger = logging.getLogger(__name__)

# Environment override for the catalog location
CONFIG_PATH_ENV = "PLANS_CONFIG_PATH"

DEFAULT_TRIAL_DAYS = 7
DEFAULT_MAX_HABITS = 3
DEFAULT_TRIAL_WARNING_DAYS = 3


@dataclass(frozen=True)
class PlanPricing:
    """Price of a plan per billing interval."""

    price_cents: int
    currency: str = "usd"
    interval: str = "month"  # "month" or "year"
    interval_count: int = 1


@dataclass
class PlanDefinition:
    """A purchasable subscription plan."""

    plan_id: str
    name: str
    tier: int
    pricing: PlanPricing
    features: List[str] = field(default_factory=list)
    popular: bool = False
    savings: Optional[str] = None
    badge: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.plan_id,
            "name": self.name,
            "tier": self.tier,
            "price_cents": self.pricing.price_cents,
            "currency": self.pricing.currency,
            "interval": self.pricing.interval,
            "interval_count": self.pricing.interval_count,
            "features": list(self.features),
            "popular": self.popular,
            "savings": self.savings,
            "badge": self.badge,
        }


@dataclass
class TrialConfig:
    """Free trial configuration."""

    days: int = DEFAULT_TRIAL_DAYS
    features: List[str] = field(default_factory=list)


@dataclass
class FreeTierLimits:
    """Caps for users without premium access."""

    max_habits: int = DEFAULT_MAX_HABITS


def _require_int(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EntitlementConfigError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise EntitlementConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


class EntitlementLoader:
    """
    Singleton loader for the plan catalog in config/plans.json.

    Thread-safe with lazy loading and reload support.

    Usage:
        loader = EntitlementLoader()
        limit = loader.get_free_tier_limits().max_habits
        plan = loader.get_plan("yearly")
    """

    _instance: Optional['EntitlementLoader'] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        """Singleton pattern implementation."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the entitlement loader.

        Args:
            config_path: Optional path to plans.json (defaults to config/plans.json)
        """
        if self._initialized:
            return

        self._config_path = config_path
        self._plans: Dict[str, PlanDefinition] = {}
        self._trial = TrialConfig()
        self._free_tier = FreeTierLimits()
        self._trial_warning_days = DEFAULT_TRIAL_WARNING_DAYS
        self._premium_features: Dict[str, str] = {}
        self._raw_config: Dict[str, Any] = {}
        self._load_lock = Lock()

        self._load_config()
        self._initialized = True

    def _resolve_config_path(self) -> Path:
        """Resolve the config file path."""
        if self._config_path:
            return Path(self._config_path)

        env_path = os.getenv(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)

        # Try multiple locations
        possible_paths = [
            Path(__file__).parent.parent.parent / "config" / "plans.json",  # backend/config/
            Path(os.getcwd()) / "config" / "plans.json",
            Path(os.getcwd()) / "backend" / "config" / "plans.json",
        ]

        for path in possible_paths:
            if path.exists():
                return path

        raise FileNotFoundError(
            f"plans.json not found in any of: {[str(p) for p in possible_paths]}"
        )

    def _load_config(self) -> None:
        """Load and parse plans.json, swapping state in only when it is valid."""
        with self._load_lock:
            config_path = self._resolve_config_path()

            logger.info(f"Loading plan catalog from {config_path}")

            try:
                with open(config_path, "r") as f:
                    raw_config = json.load(f)
            except json.JSONDecodeError as e:
                raise EntitlementConfigError(f"Invalid JSON in {config_path}: {e}") from e

            if not isinstance(raw_config, dict):
                raise EntitlementConfigError("Plan catalog must be a JSON object")

            currency = raw_config.get("currency", "usd")
            plans = self._parse_plans(raw_config.get("plans", []), currency)
            trial = self._parse_trial(raw_config.get("trial", {}))
            free_tier = self._parse_free_tier(raw_config.get("free_tier", {}))
            notices = raw_config.get("notices", {})
            trial_warning_days = _require_int(
                notices.get("trial_warning_days", DEFAULT_TRIAL_WARNING_DAYS),
                "notices.trial_warning_days",
            )
            premium_features = self._parse_premium_features(raw_config.get("premium_features", {}))

            self._raw_config = raw_config
            self._plans = plans
            self._trial = trial
            self._free_tier = free_tier
            self._trial_warning_days = trial_warning_days
            self._premium_features = premium_features

            logger.info(
                f"Loaded {len(self._plans)} plans",
                extra={
                    "trial_days": trial.days,
                    "max_habits": free_tier.max_habits,
                    "premium_features": len(premium_features),
                },
            )

    def _parse_plans(self, plans_data: List[Dict[str, Any]], currency: str) -> Dict[str, PlanDefinition]:
        """Parse plan definitions from config."""
        plans: Dict[str, PlanDefinition] = {}

        for plan_data in plans_data:
            plan_id = plan_data.get("id")
            if not plan_id:
                raise EntitlementConfigError(f"Plan without id: {plan_data!r}")

            pricing_data = plan_data.get("pricing", {})
            interval = pricing_data.get("interval", "month")
            if interval not in ("month", "year"):
                raise EntitlementConfigError(
                    f"Plan {plan_id}: unsupported interval {interval!r}"
                )
            pricing = PlanPricing(
                price_cents=_require_int(pricing_data.get("price_cents", 0), f"{plan_id}.price_cents"),
                currency=pricing_data.get("currency", currency),
                interval=interval,
                interval_count=_require_int(
                    pricing_data.get("interval_count", 1), f"{plan_id}.interval_count", minimum=1
                ),
            )

            plans[plan_id] = PlanDefinition(
                plan_id=plan_id,
                name=plan_data.get("name", plan_id),
                tier=plan_data.get("tier", 0),
                pricing=pricing,
                features=list(plan_data.get("features", [])),
                popular=bool(plan_data.get("popular", False)),
                savings=plan_data.get("savings"),
                badge=plan_data.get("badge"),
                is_active=plan_data.get("is_active", True),
            )

        return plans

    def _parse_trial(self, trial_data: Dict[str, Any]) -> TrialConfig:
        """Parse free trial settings."""
        return TrialConfig(
            days=_require_int(trial_data.get("days", DEFAULT_TRIAL_DAYS), "trial.days"),
            features=list(trial_data.get("features", [])),
        )

    def _parse_free_tier(self, free_tier_data: Dict[str, Any]) -> FreeTierLimits:
        """Parse free-tier caps."""
        return FreeTierLimits(
            max_habits=_require_int(
                free_tier_data.get("max_habits", DEFAULT_MAX_HABITS), "free_tier.max_habits"
            ),
        )

    def _parse_premium_features(self, features_data: Dict[str, Any]) -> Dict[str, str]:
        """Parse premium feature descriptions, keyed by PremiumFeature values."""
        if not isinstance(features_data, dict):
            raise EntitlementConfigError("premium_features must be a JSON object")
        known = {feature.value for feature in PremiumFeature}
        unknown = sorted(set(features_data) - known)
        if unknown:
            raise EntitlementConfigError(f"Unknown premium features: {unknown}")
        return {key: str(description) for key, description in features_data.items()}

    def reload(self) -> None:
        """
        Reload configuration from disk.

        State is only replaced after the new file parses cleanly, so a
        failed reload keeps serving the previous catalog.
        """
        logger.info("Reloading plan catalog")
        try:
            self._load_config()
        except Exception:
            logger.error("Plan catalog reload failed, keeping previous config", exc_info=True)
            raise

    def get_plan(self, plan_id: str) -> Optional[PlanDefinition]:
        """
        Get a plan by id.

        Args:
            plan_id: Plan ID (e.g., "monthly")

        Returns:
            PlanDefinition or None if not found
        """
        return self._plans.get(plan_id)

    def get_all_plans(self) -> List[PlanDefinition]:
        """Get all active plans sorted by tier."""
        plans = [plan for plan in self._plans.values() if plan.is_active]
        return sorted(plans, key=lambda p: p.tier)

    def get_trial_config(self) -> TrialConfig:
        return self._trial

    def get_free_tier_limits(self) -> FreeTierLimits:
        return self._free_tier

    def get_trial_warning_days(self) -> int:
        """Trials with this many days left or fewer are flagged as ending soon."""
        return self._trial_warning_days

    def get_premium_feature_keys(self) -> List[str]:
        return list(self._premium_features.keys())

    def get_feature_description(self, feature_key: str) -> Optional[str]:
        """Get human-readable description for a feature."""
        return self._premium_features.get(feature_key)


def get_entitlement_loader(config_path: Optional[str] = None) -> EntitlementLoader:
    """
    Get the singleton EntitlementLoader instance.

    Args:
        config_path: Optional path to plans.json

    Returns:
        EntitlementLoader singleton instance
    """
    return EntitlementLoader(config_path)


def reset_entitlement_loader() -> None:
    """
    Reset the singleton instance (for testing).

    WARNING: Only use in tests!
    """
    EntitlementLoader._instance = None
