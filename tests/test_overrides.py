"""Tests for OverrideAuthority."""

from __future__ import annotations

from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from passage_safety.core.errors import OverrideRejected
from passage_safety.core.models import OverrideRequest
from passage_safety.core.overrides import OverrideAuthority


@pytest.fixture
def authority(audit, clock):
    return OverrideAuthority(audit, clock=clock)


def _request(**kwargs) -> OverrideRequest:
    defaults = dict(
        user_id="skipper-1",
        warning_id="W1",
        warning_type="crew_fatigue",
        justification="Crew rested overnight at anchor",
    )
    defaults.update(kwargs)
    return OverrideRequest(**defaults)


def test_valid_request(authority):
    validation = authority.validate_override(_request())
    assert validation.is_valid
    assert validation.can_override
    assert not validation.requires_witness
    assert not validation.requires_additional_approval


@pytest.mark.parametrize("warning_type", [
    "grounding_imminent", "collision_course", "vessel_limits_exceeded",
])
def test_immediate_danger_is_never_overridable(authority, warning_type):
    validation = authority.validate_override(_request(warning_type=warning_type,
                                                      witnessed_by="mate"))
    assert not validation.can_override
    assert "cannot be overridden" in validation.reason


@pytest.mark.parametrize("justification", ["", "ok", "   short   "])
def test_justification_too_short(authority, justification):
    validation = authority.validate_override(_request(justification=justification))
    assert not validation.is_valid
    assert "at least 10 characters" in validation.reason


def test_witness_required(authority):
    validation = authority.validate_override(_request(warning_type="shallow_water"))
    assert not validation.can_override
    assert validation.requires_witness

    validation = authority.validate_override(_request(warning_type="shallow_water",
                                                      witnessed_by="first-mate"))
    assert validation.can_override
    assert validation.requires_witness


@pytest.mark.parametrize("hours", [0, -2, float("nan")])
def test_expiration_must_be_positive(authority, hours):
    validation = authority.validate_override(_request(expiration_hours=hours))
    assert not validation.can_override
    assert "Expiration" in validation.reason

    with pytest.raises(OverrideRejected):
        authority.apply_override(_request(expiration_hours=hours))
    assert authority.export_overrides() == []


def test_apply_then_query(authority):
    override = authority.apply_override(_request())

    assert authority.is_warning_overridden("W1")
    assert not authority.is_warning_overridden("W2")
    assert authority.get_override("W1") == override
    assert authority.get_user_overrides("skipper-1") == [override]
    assert override.acknowledged
    assert override.expires_at is None


def test_apply_rejected_raises_and_stores_nothing(authority, audit):
    with pytest.raises(OverrideRejected) as exc_info:
        authority.apply_override(_request(warning_type="grounding_imminent"))

    assert exc_info.value.code == "OVERRIDE_REJECTED"
    assert not exc_info.value.validation.can_override
    assert not authority.is_warning_overridden("W1")
    assert audit.export_logs() == []


def test_apply_is_audited_and_logged(authority, audit):
    with capture_logs() as logs:
        override = authority.apply_override(_request(), request_id="req-1")

    entries = audit.get_logs_by_request_id("req-1")
    assert len(entries) == 1
    assert entries[0].action == "override_applied"
    assert entries[0].result == "critical"
    assert entries[0].details["override"]["id"] == override.id

    applied = [e for e in logs if e["event"] == "safety_override_applied"]
    assert applied[0]["log_level"] == "warning"
    assert applied[0]["justification"] == "Crew rested overnight at anchor"


def test_override_expires(authority, clock):
    authority.apply_override(_request(expiration_hours=2))
    assert authority.is_warning_overridden("W1")

    clock.advance(hours=1, minutes=59)
    assert authority.is_warning_overridden("W1")

    clock.advance(minutes=1)
    assert not authority.is_warning_overridden("W1")
    # Expired overrides stay visible until cleanup.
    assert authority.get_override("W1") is not None


def test_any_unexpired_override_counts(authority, clock):
    authority.apply_override(_request(expiration_hours=1))
    authority.apply_override(_request(expiration_hours=5))
    clock.advance(hours=2)
    assert authority.is_warning_overridden("W1")


def test_revoke(authority):
    override = authority.apply_override(_request())
    assert authority.revoke_override(override.id, "conditions changed")
    assert not authority.is_warning_overridden("W1")
    assert not authority.revoke_override(override.id, "again")


def test_statistics_and_cleanup(authority, clock):
    authority.apply_override(_request(warning_id="A", expiration_hours=1))
    authority.apply_override(_request(warning_id="B", warning_type="restricted_area",
                                      witnessed_by="mate"))
    authority.apply_override(_request(warning_id="C", expiration_hours=10))
    clock.advance(hours=1)

    stats = authority.get_override_statistics()
    assert stats == {
        "total": 3,
        "by_type": {"crew_fatigue": 2, "restricted_area": 1},
        "expired": 1,
        "active": 2,
    }

    assert authority.cleanup_expired_overrides() == 1
    assert authority.cleanup_expired_overrides() == 0
    assert {o.warning_id for o in authority.export_overrides()} == {"B", "C"}


def test_expiry_timestamp(authority, clock):
    override = authority.apply_override(_request(expiration_hours=3))
    assert override.timestamp == clock.now
    assert override.expires_at == clock.now + timedelta(hours=3)


def test_works_without_audit(clock):
    authority = OverrideAuthority(clock=clock)
    authority.apply_override(_request())
    assert authority.is_warning_overridden("W1")
