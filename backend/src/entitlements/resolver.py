"""
Entitlement resolver - derive a canonical subscription status.

resolve_entitlement() is a total, pure function: it never reads a clock,
never performs I/O and never raises. Callers supply `now`.

Status precedence (first match wins):
    1. trial      → status TRIAL and now < trial_ends_at
    2. active     → status ACTIVE and now < subscription_end_date
    3. cancelled  → status CANCELLED and now < subscription_end_date
    4. expired    → everything else, including missing dates (fail-closed)
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from src.entitlements.models import (
    NO_ENTITLEMENT,
    Entitlement,
    SubscriptionRecord,
    SubscriptionStatus,
    ensure_utc,
)

_ONE_DAY_SECONDS = timedelta(days=1).total_seconds()


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """UTC view of `value`, or None when it is missing or outside the datetime range."""
    if value is None:
        return None
    try:
        return ensure_utc(value)
    except OverflowError:
        return None


def _is_before(now: datetime, deadline: Optional[datetime]) -> bool:
    return deadline is not None and now < deadline


def trial_days_left(trial_ends_at: Optional[datetime], now: datetime) -> int:
    """
    Whole days left in a trial, rounded up.

    A trial ending in one hour reports 1; a lapsed or missing trial reports 0.
    """
    trial_ends_at = _to_utc(trial_ends_at)
    now = _to_utc(now)
    if trial_ends_at is None or now is None:
        return 0
    remaining = (trial_ends_at - now).total_seconds()
    return max(0, math.ceil(remaining / _ONE_DAY_SECONDS))


def resolve_entitlement(
    record: Optional[SubscriptionRecord],
    now: datetime,
) -> Entitlement:
    """
    Resolve the entitlement for a subscription snapshot at `now`.

    Args:
        record: Subscription snapshot, or None for an unauthenticated user
        now: Current time supplied by the caller (naive means UTC)

    Returns:
        Entitlement value object
    """
    now = _to_utc(now)
    if record is None or now is None:
        return NO_ENTITLEMENT

    status = record.subscription_status
    # Dates outside the representable range count as missing
    trial_ends_at = _to_utc(record.trial_ends_at)
    period_end = _to_utc(record.subscription_end_date)

    days_left = trial_days_left(trial_ends_at, now)

    is_trial_active = status == SubscriptionStatus.TRIAL and _is_before(now, trial_ends_at)
    is_paid_active = status == SubscriptionStatus.ACTIVE and _is_before(now, period_end)
    is_cancelled_but_valid = (
        status == SubscriptionStatus.CANCELLED and _is_before(now, period_end)
    )

    can_access = is_trial_active or is_paid_active or is_cancelled_but_valid

    if is_trial_active:
        resolved_status = SubscriptionStatus.TRIAL
    elif is_paid_active:
        resolved_status = SubscriptionStatus.ACTIVE
    elif is_cancelled_but_valid:
        resolved_status = SubscriptionStatus.CANCELLED
    else:
        resolved_status = SubscriptionStatus.EXPIRED

    return Entitlement(
        is_trial_active=is_trial_active,
        is_premium_active=is_paid_active or is_cancelled_but_valid,
        is_expired=not can_access,
        can_access_premium_features=can_access,
        days_left=days_left,
        status=resolved_status,
    )
