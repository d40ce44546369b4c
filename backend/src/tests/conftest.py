"""
Root test configuration and fixtures.

Provides:
- now: Fixed instant every time-dependent test resolves against
- make_record: Factory for SubscriptionRecord snapshots relative to `now`
- plans_config / plans_config_file: Sample plan catalog on disk
- Singleton resets so loader/audit state never leaks between tests
"""

import json
import os
import pytest
from datetime import datetime, timezone, timedelta
from typing import Optional

from src.entitlements.audit import reset_audit_logger
from src.entitlements.loader import reset_entitlement_loader
from src.entitlements.models import (
    SubscriptionPlan,
    SubscriptionRecord,
    SubscriptionStatus,
)

# Set test environment
os.environ.setdefault("ENV", "test")

FIXED_NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_singletons(monkeypatch):
    """Fresh loader and audit logger per test; ignore any host config override."""
    monkeypatch.delenv("PLANS_CONFIG_PATH", raising=False)
    monkeypatch.delenv("USER_CONTEXT_HEADER", raising=False)
    reset_entitlement_loader()
    reset_audit_logger()
    yield
    reset_entitlement_loader()
    reset_audit_logger()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_record(now):
    """
    Factory for subscription snapshots.

    Offsets are timedeltas relative to the fixed `now`; pass None to leave
    a date unset.
    """
    def _make(
        status: Optional[SubscriptionStatus] = SubscriptionStatus.TRIAL,
        trial_offset: Optional[timedelta] = None,
        end_offset: Optional[timedelta] = None,
        plan: Optional[SubscriptionPlan] = None,
    ) -> SubscriptionRecord:
        return SubscriptionRecord(
            subscription_status=status,
            trial_ends_at=now + trial_offset if trial_offset is not None else None,
            subscription_end_date=now + end_offset if end_offset is not None else None,
            subscription_plan=plan,
        )

    return _make


@pytest.fixture
def plans_config():
    """Sample plan catalog."""
    return {
        "version": "1.0.0",
        "currency": "usd",
        "plans": [
            {
                "id": "yearly",
                "name": "Yearly Plan",
                "tier": 3,
                "pricing": {"price_cents": 799, "interval": "year", "interval_count": 1},
                "badge": "Best Value",
                "features": ["All premium features included"],
            },
            {
                "id": "monthly",
                "name": "Monthly Plan",
                "tier": 1,
                "pricing": {"price_cents": 99, "interval": "month", "interval_count": 1},
                "features": ["Recurring reward creation"],
            },
            {
                "id": "legacy",
                "name": "Legacy Plan",
                "tier": 0,
                "pricing": {"price_cents": 499, "interval": "month"},
                "is_active": False,
            },
        ],
        "trial": {"days": 7, "features": ["Balloon Pop mini-game"]},
        "free_tier": {"max_habits": 3},
        "notices": {"trial_warning_days": 3},
        "premium_features": {
            "unlimited_habits": "Unlimited habits & levels",
            "mini_games": "All mini-games unlocked",
        },
    }


@pytest.fixture
def plans_config_file(tmp_path, plans_config):
    """Write the sample catalog to a temporary plans.json."""
    path = tmp_path / "plans.json"
    path.write_text(json.dumps(plans_config))
    return str(path)
