"""Safety override authority.

Validates and records user overrides of safety warnings. Overrides are
stored by their generated id and queried by warning id; expiry is checked
at query time.
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable

import structlog

from passage_safety.core.errors import OverrideRejected
from passage_safety.core.models import OverrideRequest, OverrideValidation, SafetyOverride

if TYPE_CHECKING:
    from passage_safety.core.audit import SafetyAuditLog

log = structlog.get_logger()

# Immediate danger: never overridable, whoever asks.
NON_OVERRIDABLE_TYPES = frozenset({
    "grounding_imminent",
    "collision_course",
    "vessel_limits_exceeded",
})

# Overridable only with a second crew member as witness.
WITNESS_REQUIRED_TYPES = frozenset({
    "severe_weather",
    "shallow_water",
    "restricted_area",
})

MIN_JUSTIFICATION_LENGTH = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OverrideAuthority:
    """Owns the override collection for one process."""

    def __init__(
        self,
        audit: SafetyAuditLog | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        logger: Any = None,
    ) -> None:
        self._audit = audit
        self._clock = clock
        self._log = logger or log
        self._overrides: dict[str, SafetyOverride] = {}

    def validate_override(self, request: OverrideRequest) -> OverrideValidation:
        if request.warning_type in NON_OVERRIDABLE_TYPES:
            return OverrideValidation(
                is_valid=False,
                can_override=False,
                reason=(
                    f"Warning type '{request.warning_type}' cannot be overridden due to "
                    f"immediate danger to vessel and crew."
                ),
                requires_witness=False,
            )

        if not request.justification or len(request.justification.strip()) < MIN_JUSTIFICATION_LENGTH:
            return OverrideValidation(
                is_valid=False,
                can_override=False,
                reason=(
                    f"Justification must be at least {MIN_JUSTIFICATION_LENGTH} characters "
                    f"and explain the override decision."
                ),
                requires_witness=False,
            )

        if request.expiration_hours is not None and not request.expiration_hours > 0:
            return OverrideValidation(
                is_valid=False,
                can_override=False,
                reason="Expiration hours must be a positive number when given.",
                requires_witness=False,
            )

        requires_witness = request.warning_type in WITNESS_REQUIRED_TYPES
        if requires_witness and not request.witnessed_by:
            return OverrideValidation(
                is_valid=False,
                can_override=False,
                reason=(
                    f"Warning type '{request.warning_type}' requires witness confirmation "
                    f"from another crew member."
                ),
                requires_witness=True,
            )

        return OverrideValidation(
            is_valid=True,
            can_override=True,
            reason="Override request meets all requirements.",
            requires_witness=requires_witness,
        )

    def apply_override(self, request: OverrideRequest, request_id: str | None = None) -> SafetyOverride:
        """Validate again, store, and audit an override.

        Raises OverrideRejected when the request does not validate.
        """
        validation = self.validate_override(request)
        if not (validation.is_valid and validation.can_override):
            raise OverrideRejected(validation)

        now = self._clock()
        expires_at = None
        if request.expiration_hours is not None:
            expires_at = now + timedelta(hours=request.expiration_hours)

        override = SafetyOverride(
            id=str(uuid.uuid4()),
            user_id=request.user_id,
            timestamp=now,
            warning_id=request.warning_id,
            warning_type=request.warning_type,
            justification=request.justification,
            acknowledged=True,
            witnessed_by=request.witnessed_by,
            expires_at=expires_at,
        )
        self._overrides[override.id] = override

        self._log.warning("safety_override_applied",
                          override_id=override.id,
                          user_id=override.user_id,
                          warning_id=override.warning_id,
                          warning_type=override.warning_type,
                          justification=override.justification,
                          witnessed_by=override.witnessed_by,
                          expires_at=expires_at.isoformat() if expires_at else None)

        if self._audit is not None:
            self._audit.log_override(request_id or override.id, override)

        return override

    def is_warning_overridden(self, warning_id: str) -> bool:
        """True if any acknowledged, unexpired override exists for the warning."""
        now = self._clock()
        return any(
            o.warning_id == warning_id and o.acknowledged and not o.is_expired(now)
            for o in self._overrides.values()
        )

    def get_override(self, warning_id: str) -> SafetyOverride | None:
        """First stored override for the warning, expired or not."""
        for override in self._overrides.values():
            if override.warning_id == warning_id:
                return override
        return None

    def get_user_overrides(self, user_id: str) -> list[SafetyOverride]:
        return [o for o in self._overrides.values() if o.user_id == user_id]

    def revoke_override(self, override_id: str, reason: str) -> bool:
        override = self._overrides.pop(override_id, None)
        if override is None:
            return False

        self._log.info("safety_override_revoked", override_id=override_id,
                       warning_id=override.warning_id, reason=reason)
        return True

    def get_override_statistics(self) -> dict:
        now = self._clock()
        expired = sum(1 for o in self._overrides.values() if o.is_expired(now))
        return {
            "total": len(self._overrides),
            "by_type": dict(Counter(o.warning_type for o in self._overrides.values())),
            "expired": expired,
            "active": len(self._overrides) - expired,
        }

    def export_overrides(self) -> list[SafetyOverride]:
        return list(self._overrides.values())

    def cleanup_expired_overrides(self) -> int:
        now = self._clock()
        stale = [oid for oid, o in self._overrides.items() if o.is_expired(now)]
        for oid in stale:
            del self._overrides[oid]

        if stale:
            self._log.info("expired_overrides_cleaned", removed=len(stale))
        return len(stale)
