"""
Tests for the entitlement resolver.

Tests cover:
- Absent users
- Trial, active, cancelled and expired derivation
- Strict "now < deadline" comparisons
- Ceiling semantics of days_left
- Fail-closed handling of missing dates and unknown statuses
- Purity (same inputs, same output)
"""

import pytest
from datetime import datetime, timedelta, timezone

from src.entitlements.models import (
    Entitlement,
    SubscriptionRecord,
    SubscriptionStatus,
)
from src.entitlements.resolver import resolve_entitlement, trial_days_left


def assert_invariants(entitlement: Entitlement) -> None:
    assert entitlement.can_access_premium_features == (
        entitlement.is_trial_active or entitlement.is_premium_active
    )
    assert entitlement.is_expired == (not entitlement.can_access_premium_features)
    assert entitlement.days_left >= 0


# =============================================================================
# Absent user
# =============================================================================

class TestAbsentUser:
    """Signed-out visitors resolve to expired."""

    def test_absent_user_is_expired(self, now):
        entitlement = resolve_entitlement(None, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False
        assert entitlement.is_trial_active is False
        assert entitlement.is_premium_active is False
        assert entitlement.is_expired is True
        assert entitlement.days_left == 0


# =============================================================================
# Trial
# =============================================================================

class TestTrial:
    """Trial derivation."""

    def test_trial_three_days_left(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=timedelta(days=3))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.is_trial_active is True
        assert entitlement.days_left == 3
        assert entitlement.status == SubscriptionStatus.TRIAL
        assert entitlement.can_access_premium_features is True
        assert entitlement.is_premium_active is False
        assert_invariants(entitlement)

    def test_trial_ending_exactly_now_is_expired(self, now, make_record):
        """Comparison is strict: now == trial_ends_at is no longer trialing."""
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=timedelta(0))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.is_trial_active is False
        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.days_left == 0
        assert_invariants(entitlement)

    def test_trial_without_end_date_is_not_trialing(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=None)

        entitlement = resolve_entitlement(record, now)

        assert entitlement.is_trial_active is False
        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.days_left == 0

    def test_lapsed_trial_is_expired(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=-timedelta(days=2))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False
        assert entitlement.days_left == 0


# =============================================================================
# Paid states
# =============================================================================

class TestPaidStates:
    """Active and cancelled subscriptions."""

    def test_active_with_future_end_date(self, now, make_record):
        record = make_record(SubscriptionStatus.ACTIVE, end_offset=timedelta(days=30))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.is_premium_active is True
        assert entitlement.status == SubscriptionStatus.ACTIVE
        assert entitlement.can_access_premium_features is True
        assert entitlement.is_trial_active is False
        assert_invariants(entitlement)

    def test_active_without_end_date_fails_closed(self, now, make_record):
        """Stored 'active' with no end date resolves to expired."""
        record = make_record(SubscriptionStatus.ACTIVE, end_offset=None)

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False
        assert entitlement.is_premium_active is False

    def test_active_with_past_end_date_is_expired(self, now, make_record):
        record = make_record(SubscriptionStatus.ACTIVE, end_offset=-timedelta(seconds=1))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False

    def test_cancelled_with_future_end_date_keeps_access(self, now, make_record):
        record = make_record(SubscriptionStatus.CANCELLED, end_offset=timedelta(days=10))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.CANCELLED
        assert entitlement.can_access_premium_features is True
        assert entitlement.is_premium_active is True
        assert_invariants(entitlement)

    def test_cancelled_with_past_end_date_is_expired(self, now, make_record):
        record = make_record(SubscriptionStatus.CANCELLED, end_offset=-timedelta(days=1))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False

    def test_active_user_with_leftover_trial_date_reports_days_left(self, now, make_record):
        """days_left follows trial_ends_at regardless of the stored status."""
        record = make_record(
            SubscriptionStatus.ACTIVE,
            trial_offset=timedelta(days=2),
            end_offset=timedelta(days=30),
        )

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.ACTIVE
        assert entitlement.is_trial_active is False
        assert entitlement.days_left == 2


# =============================================================================
# Fail-closed inputs
# =============================================================================

class TestFailClosed:
    """Unknown or incomplete data never grants access."""

    def test_unknown_status_is_expired(self, now):
        record = SubscriptionRecord.from_dict({
            "subscriptionStatus": "lifetime",
            "subscriptionEndDate": (now + timedelta(days=30)).isoformat(),
        })

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False

    def test_stored_expired_status_is_expired(self, now, make_record):
        record = make_record(
            SubscriptionStatus.EXPIRED,
            trial_offset=timedelta(days=3),
            end_offset=timedelta(days=3),
        )

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False

    def test_unparseable_dates_are_treated_as_missing(self, now):
        record = SubscriptionRecord.from_dict({
            "subscriptionStatus": "trial",
            "trialEndsAt": "next tuesday",
        })

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.days_left == 0

    def test_end_date_outside_datetime_range_is_treated_as_missing(self, now):
        """An aware date whose UTC form would overflow never grants access."""
        record = SubscriptionRecord(
            subscription_status=SubscriptionStatus.ACTIVE,
            subscription_end_date=datetime(9999, 12, 31, 23, 0, tzinfo=timezone(timedelta(hours=-5))),
        )

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.can_access_premium_features is False
        assert_invariants(entitlement)

    def test_trial_end_outside_datetime_range_reports_zero_days(self, now):
        record = SubscriptionRecord(
            subscription_status=SubscriptionStatus.TRIAL,
            trial_ends_at=datetime(9999, 12, 31, 23, 0, tzinfo=timezone(timedelta(hours=-5))),
        )

        entitlement = resolve_entitlement(record, now)

        assert entitlement.is_trial_active is False
        assert entitlement.days_left == 0

    def test_now_outside_datetime_range_is_expired(self, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=timedelta(days=3))
        extreme_now = datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=5)))

        entitlement = resolve_entitlement(record, extreme_now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert entitlement.days_left == 0
        assert_invariants(entitlement)

    def test_empty_record_is_expired(self, now):
        entitlement = resolve_entitlement(SubscriptionRecord(), now)

        assert entitlement.status == SubscriptionStatus.EXPIRED
        assert_invariants(entitlement)


# =============================================================================
# days_left rounding
# =============================================================================

class TestDaysLeft:
    """days_left rounds up and never goes negative."""

    def test_one_hour_left_reports_one_day(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=timedelta(hours=1))

        entitlement = resolve_entitlement(record, now)

        assert entitlement.days_left == 1
        assert entitlement.is_trial_active is True

    def test_one_second_past_reports_zero(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=-timedelta(seconds=1))

        assert resolve_entitlement(record, now).days_left == 0

    def test_partial_day_rounds_up(self, now):
        assert trial_days_left(now + timedelta(days=2, hours=1), now) == 3

    def test_missing_trial_end(self, now):
        assert trial_days_left(None, now) == 0


# =============================================================================
# Time zones
# =============================================================================

class TestTimezones:
    """Naive datetimes are interpreted as UTC."""

    def test_naive_now_against_aware_dates(self, now, make_record):
        record = make_record(SubscriptionStatus.TRIAL, trial_offset=timedelta(days=1))
        naive_now = now.replace(tzinfo=None)

        entitlement = resolve_entitlement(record, naive_now)

        assert entitlement.is_trial_active is True
        assert entitlement.days_left == 1

    def test_offset_aware_dates_compare_by_instant(self, now):
        plus_two = timezone(timedelta(hours=2))
        # 13:00+02:00 == 11:00 UTC, an hour before `now`
        record = SubscriptionRecord(
            subscription_status=SubscriptionStatus.ACTIVE,
            subscription_end_date=datetime(2026, 3, 14, 13, 0, tzinfo=plus_two),
        )

        assert resolve_entitlement(record, now).status == SubscriptionStatus.EXPIRED


# =============================================================================
# Purity
# =============================================================================

class TestPurity:
    """Same inputs always give the same output."""

    @pytest.mark.parametrize("status", list(SubscriptionStatus))
    def test_repeated_calls_are_identical(self, now, make_record, status):
        record = make_record(
            status,
            trial_offset=timedelta(days=5),
            end_offset=timedelta(days=20),
        )

        first = resolve_entitlement(record, now)
        second = resolve_entitlement(record, now)

        assert first == second
        assert first.to_dict() == second.to_dict()
        assert_invariants(first)

    def test_status_precedence_trial_over_paid(self, now, make_record):
        """A record can only carry one stored status, so trial never mixes with paid."""
        record = make_record(
            SubscriptionStatus.TRIAL,
            trial_offset=timedelta(days=5),
            end_offset=timedelta(days=20),
        )

        entitlement = resolve_entitlement(record, now)

        assert entitlement.status == SubscriptionStatus.TRIAL
        assert entitlement.is_premium_active is False
