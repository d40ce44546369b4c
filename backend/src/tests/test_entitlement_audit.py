"""
Tests for premium access denial auditing.
"""

import json
import logging

from src.entitlements.audit import (
    AccessDenialEvent,
    EntitlementAuditLogger,
    get_audit_logger,
    reset_audit_logger,
)


def make_event(**overrides):
    data = {
        "feature_name": "mini_games",
        "subscription_status": "expired",
        "user_id": "parent_42",
        "stored_status": "trial",
    }
    data.update(overrides)
    return AccessDenialEvent(**data)


class TestAccessDenialEvent:

    def test_defaults(self):
        event = make_event()

        assert event.event_id
        assert event.timestamp
        assert event.days_left == 0
        assert event.extra_metadata == {}

    def test_serialization(self):
        event = make_event(reason="Your free trial has ended")

        data = json.loads(event.to_json())

        assert data["feature_name"] == "mini_games"
        assert data["stored_status"] == "trial"
        assert data["reason"] == "Your free trial has ended"
        assert data == event.to_dict()

    def test_event_ids_are_unique(self):
        assert make_event().event_id != make_event().event_id


class TestEntitlementAuditLogger:

    def test_writes_to_audit_logger(self, caplog):
        audit = EntitlementAuditLogger()

        with caplog.at_level(logging.INFO):
            written = audit.log_denial(make_event())

        assert written is True
        audit_records = [r for r in caplog.records if r.name == "entitlements.audit"]
        assert len(audit_records) == 1
        assert audit_records[0].levelno == logging.WARNING
        assert audit_records[0].event_type == "access_denied"
        assert audit_records[0].audit_data["feature_name"] == "mini_games"

    def test_repeated_denials_are_aggregated(self, caplog):
        audit = EntitlementAuditLogger(aggregation_window_seconds=60)

        with caplog.at_level(logging.WARNING, logger="entitlements.audit"):
            assert audit.log_denial(make_event()) is True
            assert audit.log_denial(make_event()) is False

        assert len([r for r in caplog.records if r.name == "entitlements.audit"]) == 1

    def test_different_features_are_not_aggregated(self):
        audit = EntitlementAuditLogger()

        assert audit.log_denial(make_event(feature_name="mini_games")) is True
        assert audit.log_denial(make_event(feature_name="unlimited_habits")) is True

    def test_different_users_are_not_aggregated(self):
        audit = EntitlementAuditLogger()

        assert audit.log_denial(make_event(user_id="parent_1")) is True
        assert audit.log_denial(make_event(user_id="parent_2")) is True

    def test_anonymous_denials_share_a_key(self):
        audit = EntitlementAuditLogger()

        assert audit.log_denial(make_event(user_id=None)) is True
        assert audit.log_denial(make_event(user_id=None)) is False

    def test_zero_window_disables_aggregation(self):
        audit = EntitlementAuditLogger(aggregation_window_seconds=0)

        assert audit.log_denial(make_event()) is True
        # Entries older than the cutoff are pruned before the lookup
        audit._recent_denials = {k: v - 1 for k, v in audit._recent_denials.items()}
        assert audit.log_denial(make_event()) is True


class TestSingleton:

    def test_same_instance(self):
        assert get_audit_logger() is get_audit_logger()

    def test_reset(self):
        first = get_audit_logger()
        reset_audit_logger()

        assert get_audit_logger() is not first
