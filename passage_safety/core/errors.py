"""Passage safety exceptions.

Only caller bugs raise. Degenerate geometry and unavailable stores never do.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from passage_safety.core.models import OverrideValidation


class SafetyError(Exception):
    """Base exception for safety subsystem errors."""

    def __init__(
        self,
        message: str,
        code: str = "SAFETY_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidInput(SafetyError, ValueError):
    """Raised for malformed numeric parameters (negative depth, bad lat/lon...)."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        details = {}
        if field is not None:
            details = {"field": field, "value": value}
        super().__init__(message=message, code="INVALID_INPUT", details=details)


class OverrideRejected(SafetyError):
    """Raised by apply_override when the request fails validation."""

    def __init__(self, validation: OverrideValidation) -> None:
        self.validation = validation
        super().__init__(
            message=f"Override request rejected: {validation.reason}",
            code="OVERRIDE_REJECTED",
            details=validation.to_dict(),
        )
