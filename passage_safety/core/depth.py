"""Depth safety: grounding risk from charted depth, tide and draft.

All depths are feet. Charted depth is relative to chart datum (MLW);
tidal height is positive above datum, negative below.
"""

from __future__ import annotations

import math

from passage_safety.core.errors import InvalidInput
from passage_safety.core.models import DepthCalculation, Waypoint

# Less experienced crews get larger margins.
CREW_EXPERIENCE_MULTIPLIERS = {
    "novice": 1.5,
    "intermediate": 1.2,
    "advanced": 1.0,
    "professional": 0.9,
}

# Below this much water under the keel is always critical.
CRITICAL_CLEARANCE_FT = 1.0


class DepthSafetyEngine:
    """Stateless grounding-risk calculator over a fixed clearance policy."""

    def __init__(
        self,
        minimum_clearance_percent: float = 20.0,
        minimum_absolute_clearance: float = 2.0,
        chart_datum_adjustment: float = 0.0,
    ) -> None:
        self._clearance_percent = minimum_clearance_percent
        self._absolute_clearance = minimum_absolute_clearance
        self._datum_adjustment = chart_datum_adjustment

    def minimum_clearance(self, vessel_draft: float) -> float:
        """Greater of the percentage-of-draft and absolute clearance."""
        return max(vessel_draft * (self._clearance_percent / 100), self._absolute_clearance)

    def calculate_depth_safety(
        self,
        location: Waypoint,
        charted_depth: float,
        vessel_draft: float,
        tidal_height: float = 0.0,
        *,
        minimum_clearance: float | None = None,
    ) -> DepthCalculation:
        """Assess grounding risk at a location.

        ``minimum_clearance`` replaces the policy clearance, e.g. after
        :meth:`adjust_for_crew_experience`.
        """
        if not math.isfinite(charted_depth) or charted_depth < 0:
            raise InvalidInput(
                f"Invalid charted depth: {charted_depth}. Must be non-negative.",
                field="charted_depth", value=charted_depth,
            )
        if not math.isfinite(vessel_draft) or vessel_draft <= 0:
            raise InvalidInput(
                f"Invalid vessel draft: {vessel_draft}. Must be positive.",
                field="vessel_draft", value=vessel_draft,
            )
        if not math.isfinite(tidal_height):
            raise InvalidInput(
                f"Invalid tidal height: {tidal_height}. Must be a finite number.",
                field="tidal_height", value=tidal_height,
            )

        tidal_adjustment = tidal_height + self._datum_adjustment
        actual_depth = charted_depth + tidal_adjustment
        if minimum_clearance is None:
            minimum_clearance = self.minimum_clearance(vessel_draft)
        clearance = actual_depth - vessel_draft
        is_grounding_risk = clearance < minimum_clearance

        if clearance < 0:
            severity = "critical"
            recommendation = (
                f"CRITICAL: Vessel will ground! Charted depth ({charted_depth:.1f}ft + "
                f"{tidal_adjustment:.1f}ft tide = {actual_depth:.1f}ft) is less than vessel "
                f"draft ({vessel_draft:.1f}ft). DO NOT PROCEED."
            )
        elif clearance < CRITICAL_CLEARANCE_FT:
            severity = "critical"
            recommendation = (
                f"CRITICAL: Only {clearance:.1f}ft clearance under keel. Extreme grounding "
                f"risk. Divert immediately or wait for higher tide."
            )
        elif clearance < minimum_clearance:
            severity = "high"
            recommendation = (
                f"HIGH RISK: Clearance {clearance:.1f}ft is below recommended minimum "
                f"{minimum_clearance:.1f}ft. Exercise extreme caution. Consider waiting for "
                f"higher tide or alternative route."
            )
        elif clearance < minimum_clearance * 1.5:
            severity = "moderate"
            recommendation = (
                f"CAUTION: Clearance {clearance:.1f}ft is adequate but monitor depth closely. "
                f"Maintain precise navigation."
            )
        else:
            severity = "safe"
            recommendation = f"Safe depth: {clearance:.1f}ft clearance under keel."

        return DepthCalculation(
            location=location,
            charted_depth=charted_depth,
            tidal_adjustment=tidal_adjustment,
            actual_depth=actual_depth,
            vessel_draft=vessel_draft,
            minimum_clearance=minimum_clearance,
            clearance_available=clearance,
            is_grounding_risk=is_grounding_risk,
            severity=severity,
            recommendation=recommendation,
        )

    def calculate_minimum_safe_depth(self, vessel_draft: float) -> float:
        return vessel_draft + self.minimum_clearance(vessel_draft)

    def adjust_for_crew_experience(self, base_clearance: float, experience_level: str) -> float:
        try:
            multiplier = CREW_EXPERIENCE_MULTIPLIERS[experience_level]
        except KeyError:
            raise InvalidInput(
                f"Invalid crew experience: {experience_level}",
                field="crew_experience", value=experience_level,
            ) from None
        return base_clearance * multiplier

    def check_at_low_water(self, charted_depth: float, vessel_draft: float, lowest_tide: float) -> bool:
        """True if the lowest predicted tide still leaves the minimum safe depth."""
        return charted_depth + lowest_tide >= self.calculate_minimum_safe_depth(vessel_draft)
