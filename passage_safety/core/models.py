"""Passage safety: core internal data models.

These are plain dataclasses with no framework dependencies.
JSON payloads are converted to/from these at the API and storage boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

AREA_TYPES = frozenset({
    "military", "marine_sanctuary", "shipping_lane", "speed_restricted", "other",
})

CREW_EXPERIENCE_LEVELS = ("novice", "intermediate", "advanced", "professional")

AUDIT_ACTIONS = frozenset({
    "route_analyzed", "warning_generated", "override_applied",
    "hazard_detected", "recommendation_made", "data_source_used",
})


@dataclass(frozen=True)
class Waypoint:
    latitude: float
    longitude: float
    name: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"latitude": self.latitude, "longitude": self.longitude}
        if self.name:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class GeographicBounds:
    """Lat/lon rectangle in degrees. north >= south is expected, not enforced."""
    north: float
    south: float
    east: float
    west: float

    def to_dict(self) -> dict:
        return {"north": self.north, "south": self.south,
                "east": self.east, "west": self.west}


@dataclass(frozen=True)
class AreaSchedule:
    start: str = "permanent"  # ISO timestamp or "permanent"
    end: str | None = None
    recurring: str | None = None  # e.g. "Daily 0800-1600"


@dataclass(frozen=True)
class RestrictedArea:
    id: str
    name: str
    type: str
    description: str = ""
    restrictions: tuple[str, ...] = ()
    active: bool = True
    schedule: AreaSchedule = field(default_factory=AreaSchedule)
    authority: str = ""
    bounds: GeographicBounds | None = None
    polygon: tuple[Waypoint, ...] = ()
    penalty: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "restrictions": list(self.restrictions),
            "active": self.active,
            "schedule": {
                "start": self.schedule.start,
                "end": self.schedule.end,
                "recurring": self.schedule.recurring,
            },
            "authority": self.authority,
            "bounds": self.bounds.to_dict() if self.bounds else None,
            "polygon": [p.to_dict() for p in self.polygon],
            "penalty": self.penalty,
        }


@dataclass(frozen=True)
class DepthCalculation:
    location: Waypoint
    charted_depth: float
    tidal_adjustment: float
    actual_depth: float
    vessel_draft: float
    minimum_clearance: float
    clearance_available: float
    is_grounding_risk: bool
    severity: str  # "critical", "high", "moderate" or "safe"
    recommendation: str

    def to_dict(self) -> dict:
        return {
            "location": self.location.to_dict(),
            "charted_depth": self.charted_depth,
            "tidal_adjustment": self.tidal_adjustment,
            "actual_depth": self.actual_depth,
            "vessel_draft": self.vessel_draft,
            "minimum_clearance": self.minimum_clearance,
            "clearance_available": self.clearance_available,
            "is_grounding_risk": self.is_grounding_risk,
            "severity": self.severity,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class WeatherDataPoint:
    time: datetime
    location: Waypoint
    wind_speed: float  # knots
    wind_gust: float | None = None  # knots
    wave_height: float | None = None  # feet
    pressure: float | None = None  # millibars
    visibility: float | None = None  # nautical miles
    precipitation: float | None = None  # inches/hour


@dataclass(frozen=True)
class PredictedImpact:
    timing: datetime
    wind_speed: float
    wave_height: float
    recommended_action: str  # "shelter_immediately", "delay_departure" or "monitor_closely"


@dataclass(frozen=True)
class SevereWeatherPattern:
    type: str
    intensity: str
    affected_area: GeographicBounds
    movement_speed: float
    movement_direction: float
    predicted_impact: PredictedImpact
    last_updated: datetime
    forecast_track: tuple[Waypoint, ...] = ()
    name: str | None = None
    current_position: Waypoint | None = None
    data_source: str = "Weather Analysis"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "name": self.name,
            "intensity": self.intensity,
            "affected_area": self.affected_area.to_dict(),
            "movement_speed": self.movement_speed,
            "movement_direction": self.movement_direction,
            "current_position": self.current_position.to_dict() if self.current_position else None,
            "forecast_track": [p.to_dict() for p in self.forecast_track],
            "predicted_impact": {
                "timing": self.predicted_impact.timing.isoformat(),
                "wind_speed": self.predicted_impact.wind_speed,
                "wave_height": self.predicted_impact.wave_height,
                "recommended_action": self.predicted_impact.recommended_action,
            },
            "data_source": self.data_source,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class WeatherWindow:
    exists: bool
    confidence: str  # "high", "partial" or "none"
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class DelayRecommendation:
    should_delay: bool
    reason: str
    suggested_delay_hours: int
    alternative_departure: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "should_delay": self.should_delay,
            "reason": self.reason,
            "suggested_delay_hours": self.suggested_delay_hours,
            "alternative_departure": (
                self.alternative_departure.isoformat() if self.alternative_departure else None
            ),
        }


@dataclass(frozen=True)
class OverrideRequest:
    user_id: str
    warning_id: str
    warning_type: str
    justification: str
    witnessed_by: str | None = None
    expiration_hours: float | None = None


@dataclass(frozen=True)
class OverrideValidation:
    is_valid: bool
    can_override: bool
    reason: str
    requires_witness: bool
    requires_additional_approval: bool = False

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "can_override": self.can_override,
            "reason": self.reason,
            "requires_witness": self.requires_witness,
            "requires_additional_approval": self.requires_additional_approval,
        }


@dataclass(frozen=True)
class SafetyOverride:
    id: str
    user_id: str
    timestamp: datetime
    warning_id: str
    warning_type: str
    justification: str
    acknowledged: bool = True
    witnessed_by: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "warning_id": self.warning_id,
            "warning_type": self.warning_type,
            "justification": self.justification,
            "acknowledged": self.acknowledged,
            "witnessed_by": self.witnessed_by,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class AuditEntry:
    id: str
    timestamp: str  # ISO 8601, UTC
    request_id: str
    action: str
    details: dict[str, Any]
    result: str  # "success", "warning" or "critical"
    user_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "request_id": self.request_id,
            "action": self.action,
            "details": self.details,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AuditEntry:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            request_id=data.get("request_id", ""),
            action=data.get("action", ""),
            details=data.get("details") or {},
            result=data.get("result", "success"),
            user_id=data.get("user_id"),
        )


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of pulling restricted areas from the backing store.

    A failed refresh is a value, not an exception: the registry keeps its
    last known good areas and the caller decides whether to care.
    """
    ok: bool
    areas_loaded: int = 0
    error: str | None = None
