"""Route safety analyzer: combines area, depth and weather checks into a verdict.

This is the core business logic behind the safety tool surface. It depends
on the component classes and the audit log, not on any framework. Every
hazard, warning and recommendation it produces is written to the audit log
under one request id.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import structlog

from passage_safety.core import geo
from passage_safety.core.errors import InvalidInput
from passage_safety.core.models import (
    CREW_EXPERIENCE_LEVELS,
    DelayRecommendation,
    DepthCalculation,
    OverrideRequest,
    RestrictedArea,
    SafetyOverride,
    SevereWeatherPattern,
    WeatherDataPoint,
    Waypoint,
)

if TYPE_CHECKING:
    from passage_safety.core.areas import RestrictedAreaRegistry
    from passage_safety.core.audit import SafetyAuditLog
    from passage_safety.core.depth import DepthSafetyEngine
    from passage_safety.core.overrides import OverrideAuthority
    from passage_safety.core.weather import WeatherPatternDetector

log = structlog.get_logger()

# Used to estimate passage hours when the caller gives none.
DEFAULT_CRUISING_SPEED_KNOTS = 5.0

# Routes with more waypoints than this get a rest-stop recommendation.
LONG_ROUTE_WAYPOINTS = 10

AREA_HAZARD_SEVERITY = {"military": "high"}

WEATHER_HAZARD_SEVERITY = {
    "shelter_immediately": "critical",
    "delay_departure": "high",
    "monitor_closely": "moderate",
}

STANDARD_RECOMMENDATIONS = (
    "File float plan with harbor master or trusted shore contact before departure",
    "Test all safety equipment: VHF radio, EPIRB, flares, life jackets",
    "Monitor VHF Channel 16 continuously while underway",
    "Check weather updates every 4-6 hours during passage",
)


@dataclass
class Hazard:
    id: str
    type: str  # "shallow_water", "restricted_area", "weather", ...
    location: Waypoint | None
    severity: str  # "critical", "high", "moderate" or "low"
    description: str
    avoidance: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "location": self.location.to_dict() if self.location else None,
            "severity": self.severity,
            "description": self.description,
            "avoidance": self.avoidance,
        }


@dataclass
class SafetyWarning:
    """A warning the user may override, identified by a stable id."""
    id: str
    type: str  # "navigation", "weather", "regulatory" or "operational"
    warning_type: str  # override category, e.g. "shallow_water"
    severity: str  # "urgent", "warning", "advisory" or "info"
    description: str
    action: str
    location: Waypoint | None = None
    overridden: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "warning_type": self.warning_type,
            "severity": self.severity,
            "description": self.description,
            "action": self.action,
            "location": self.location.to_dict() if self.location else None,
            "overridden": self.overridden,
        }


@dataclass
class RouteSafetyReport:
    request_id: str
    total_waypoints: int
    safety_score: str  # "Excellent", "Good", "Fair" or "Poor"
    go_no_go: str  # "GO", "CAUTION" or "NO-GO"
    hazards: list[Hazard] = field(default_factory=list)
    warnings: list[SafetyWarning] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    restricted_areas: list[RestrictedArea] = field(default_factory=list)
    depth_checks: list[DepthCalculation] = field(default_factory=list)
    weather_pattern: SevereWeatherPattern | None = None
    delay: DelayRecommendation | None = None
    crew_experience_considered: bool = False
    data_sources: list[str] = field(default_factory=list)
    confidence: str = "low"

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "route_analyzed": True,
            "total_waypoints": self.total_waypoints,
            "safety_score": self.safety_score,
            "go_no_go": self.go_no_go,
            "hazards": [h.to_dict() for h in self.hazards],
            "warnings": [w.to_dict() for w in self.warnings],
            "recommendations": list(self.recommendations),
            "restricted_areas": [a.to_dict() for a in self.restricted_areas],
            "depth_checks": [d.to_dict() for d in self.depth_checks],
            "weather_pattern": self.weather_pattern.to_dict() if self.weather_pattern else None,
            "delay": self.delay.to_dict() if self.delay else None,
            "crew_experience_considered": self.crew_experience_considered,
            "data_sources": list(self.data_sources),
            "confidence": self.confidence,
        }


def validate_waypoint(point: Waypoint) -> None:
    if not -90 <= point.latitude <= 90:
        raise InvalidInput(f"Invalid latitude: {point.latitude:g}", field="latitude",
                           value=point.latitude)
    if not -180 <= point.longitude <= 180:
        raise InvalidInput(f"Invalid longitude: {point.longitude:g}", field="longitude",
                           value=point.longitude)


def validate_route(route: Sequence[Waypoint]) -> None:
    if not route:
        raise InvalidInput("Route must be a non-empty array of waypoints", field="route")
    for point in route:
        validate_waypoint(point)


def validate_crew_experience(level: str | None) -> None:
    if level is not None and level not in CREW_EXPERIENCE_LEVELS:
        raise InvalidInput(f"Invalid crew experience: {level}", field="crew_experience",
                           value=level)


def score_route(hazards: Sequence[Hazard], active_warnings: int, crew_experience: str | None) -> str:
    novice = crew_experience == "novice"
    if any(h.severity == "critical" for h in hazards):
        return "Poor"
    if len(hazards) >= 2 or (hazards and novice):
        return "Fair"
    if hazards or active_warnings or novice:
        return "Good"
    return "Excellent"


def go_no_go_for(score: str, crew_experience: str | None) -> str:
    if score == "Poor":
        return "NO-GO"
    if score in ("Fair", "Good") or crew_experience == "novice":
        return "CAUTION"
    return "GO"


def route_distance_nm(route: Sequence[Waypoint]) -> float:
    return sum(geo.haversine_distance_nm(a, b) for a, b in zip(route, route[1:]))


class RouteSafetyAnalyzer:
    """Runs the safety checks for one request at a time."""

    def __init__(
        self,
        areas: RestrictedAreaRegistry,
        depth: DepthSafetyEngine,
        weather: WeatherPatternDetector,
        overrides: OverrideAuthority,
        audit: SafetyAuditLog,
    ) -> None:
        self.areas = areas
        self.depth = depth
        self.weather = weather
        self.overrides = overrides
        self.audit = audit

    async def check_route_safety(
        self,
        route: Sequence[Waypoint],
        vessel_draft: float | None = None,
        crew_experience: str | None = None,
        *,
        depths: Sequence[float | None] | None = None,
        tidal_height: float = 0.0,
        weather: Sequence[WeatherDataPoint] | None = None,
        planned_duration_hours: float | None = None,
        user_id: str | None = None,
    ) -> RouteSafetyReport:
        validate_route(route)
        validate_crew_experience(crew_experience)
        if vessel_draft is not None and (not math.isfinite(vessel_draft) or vessel_draft <= 0):
            raise InvalidInput(f"Invalid vessel draft: {vessel_draft}. Must be positive.",
                               field="vessel_draft", value=vessel_draft)
        if depths is not None and len(depths) != len(route):
            raise InvalidInput(
                f"Expected one charted depth per waypoint ({len(route)}), got {len(depths)}",
                field="depths", value=len(depths),
            )

        request_id = str(uuid.uuid4())
        report = RouteSafetyReport(
            request_id=request_id,
            total_waypoints=len(route),
            safety_score="Excellent",
            go_no_go="GO",
            crew_experience_considered=crew_experience is not None,
        )

        await self.areas.ensure_fresh_data()
        self._check_areas(report, list(route), user_id)

        if vessel_draft is not None and depths:
            self._check_depths(report, route, depths, vessel_draft, tidal_height,
                               crew_experience, user_id)

        if weather:
            if planned_duration_hours is None:
                planned_duration_hours = max(
                    1, math.ceil(route_distance_nm(route) / DEFAULT_CRUISING_SPEED_KNOTS))
            self._check_weather(report, weather, planned_duration_hours, user_id)

        for warning in report.warnings:
            warning.overridden = self.overrides.is_warning_overridden(warning.id)
            self.audit.log_warning_generated(
                request_id, user_id, warning.warning_type, warning.severity,
                warning.location, warning.description)

        active_warnings = sum(1 for w in report.warnings if not w.overridden)
        report.safety_score = score_route(report.hazards, active_warnings, crew_experience)
        report.go_no_go = go_no_go_for(report.safety_score, crew_experience)
        report.confidence = ("high" if depths and weather else
                             "medium" if depths or weather else "low")

        for rec_type, priority, text in self._recommendations(report, route, crew_experience):
            report.recommendations.append(text)
            self.audit.log_recommendation(request_id, user_id, rec_type, priority, text)

        self.audit.log_route_analysis(
            request_id, user_id, route, len(report.hazards), len(report.warnings),
            report.safety_score, report.data_sources, report.confidence)
        return report

    def _add_hazard(self, report: RouteSafetyReport, hazard: Hazard, user_id: str | None) -> None:
        report.hazards.append(hazard)
        self.audit.log_hazard_detected(report.request_id, user_id, hazard.type,
                                       hazard.location, hazard.severity, hazard.description)

    def _add_source(self, report: RouteSafetyReport, data_type: str, source: str,
                    confidence: str) -> None:
        report.data_sources.append(source)
        self.audit.log_data_source(report.request_id, data_type, source, confidence)

    def _check_areas(self, report: RouteSafetyReport, route: list[Waypoint],
                     user_id: str | None) -> None:
        self._add_source(report, "restricted_areas", "Restricted area registry", "high")
        conflicts = self.areas.check_route(route)

        for area in conflicts.values():
            location = min(route, key=lambda p: self.areas.calculate_distance_to_area(p, area))
            report.restricted_areas.append(area)
            self._add_hazard(report, Hazard(
                id=f"restricted_area:{area.id}",
                type="restricted_area",
                location=location,
                severity=AREA_HAZARD_SEVERITY.get(area.type, "moderate"),
                description=f"Route passes through {area.name}. {area.description}".strip(),
                avoidance="; ".join(area.restrictions) or None,
            ), user_id)
            report.warnings.append(SafetyWarning(
                id=f"restricted_area:{area.id}",
                type="regulatory",
                warning_type="restricted_area",
                severity="warning",
                description=f"{area.name} ({area.authority})",
                action=area.penalty or "Observe posted restrictions",
                location=location,
            ))

    def _check_depths(
        self,
        report: RouteSafetyReport,
        route: Sequence[Waypoint],
        depths: Sequence[float | None],
        vessel_draft: float,
        tidal_height: float,
        crew_experience: str | None,
        user_id: str | None,
    ) -> None:
        self._add_source(report, "depth", "Charted depth (caller supplied)", "medium")
        clearance = self.depth.minimum_clearance(vessel_draft)
        if crew_experience is not None:
            clearance = self.depth.adjust_for_crew_experience(clearance, crew_experience)

        for point, charted in zip(route, depths):
            if charted is None:
                continue
            calc = self.depth.calculate_depth_safety(
                point, charted, vessel_draft, tidal_height, minimum_clearance=clearance)
            report.depth_checks.append(calc)
            if calc.severity == "safe":
                continue

            point_id = f"{point.latitude:.4f},{point.longitude:.4f}"
            if calc.severity in ("critical", "high"):
                self._add_hazard(report, Hazard(
                    id=f"shallow_water:{point_id}",
                    type="shallow_water",
                    location=point,
                    severity=calc.severity,
                    description=calc.recommendation,
                    avoidance="Wait for higher tide or route through deeper water",
                ), user_id)

            grounding = calc.clearance_available < 0
            report.warnings.append(SafetyWarning(
                id=f"{'grounding_imminent' if grounding else 'shallow_water'}:{point_id}",
                type="navigation",
                warning_type="grounding_imminent" if grounding else "shallow_water",
                severity={"critical": "urgent", "high": "warning"}.get(calc.severity, "advisory"),
                description=calc.recommendation,
                action="Verify depth on the latest chart before passage",
                location=point,
            ))

    def _check_weather(
        self,
        report: RouteSafetyReport,
        series: Sequence[WeatherDataPoint],
        planned_duration_hours: float,
        user_id: str | None,
    ) -> None:
        self._add_source(report, "weather", "Forecast series (caller supplied)", "medium")
        pattern = self.weather.analyze_pattern(series)
        report.weather_pattern = pattern
        report.delay = self.weather.recommend_delay(series, planned_duration_hours)

        if pattern is not None:
            action = pattern.predicted_impact.recommended_action
            self._add_hazard(report, Hazard(
                id=f"weather:{pattern.type}",
                type="weather",
                location=pattern.current_position or series[0].location,
                severity=WEATHER_HAZARD_SEVERITY.get(action, "moderate"),
                description=f"{pattern.type.replace('_', ' ').title()}: {pattern.intensity}",
                avoidance=action.replace("_", " "),
            ), user_id)
            report.warnings.append(SafetyWarning(
                id=f"severe_weather:{pattern.type}",
                type="weather",
                warning_type="severe_weather",
                severity="urgent" if action == "shelter_immediately" else "warning",
                description=report.delay.reason,
                action=f"Delay departure {report.delay.suggested_delay_hours} hours",
            ))
        elif report.delay.should_delay:
            report.warnings.append(SafetyWarning(
                id="weather_window:none",
                type="weather",
                warning_type="weather_window",
                severity="warning",
                description=report.delay.reason,
                action=f"Check again in {report.delay.suggested_delay_hours} hours",
            ))

    @staticmethod
    def _recommendations(
        report: RouteSafetyReport,
        route: Sequence[Waypoint],
        crew_experience: str | None,
    ) -> list[tuple[str, str, str]]:
        """(type, priority, text) tuples in presentation order."""
        recs: list[tuple[str, str, str]] = []

        if report.go_no_go == "NO-GO":
            recs.append(("route", "critical",
                         "DO NOT PROCEED - Conditions exceed safe limits for this passage"))
            recs.append(("communication", "high",
                         "Contact Coast Guard or harbor master for current conditions"))
        elif report.go_no_go == "CAUTION":
            recs.append(("preparation", "high",
                         "PROCEED WITH CAUTION - Verify all safety equipment and crew preparedness"))
            recs.append(("route", "medium",
                         "Have contingency plan and alternate ports identified"))
        else:
            recs.append(("route", "low",
                         "Conditions within acceptable limits - monitor weather forecasts for changes"))

        for area in report.restricted_areas:
            recs.append(("route", "high",
                         f"Review restrictions for {area.name} ({area.authority}) or re-route around it"))

        if report.delay is not None and report.delay.should_delay:
            priority = "critical" if report.weather_pattern else "high"
            recs.append(("timing", priority,
                         f"Delay departure {report.delay.suggested_delay_hours} hours: "
                         f"{report.delay.reason}"))

        if crew_experience == "novice":
            recs.append(("crew", "high",
                         "NOVICE CREW: Ensure crew with passage experience is aboard or consider delaying"))
            recs.append(("crew", "high", "NOVICE CREW: Practice MOB drills before departure"))
            recs.append(("crew", "high", "NOVICE CREW: Avoid night passages and heavy weather"))
        elif crew_experience == "intermediate":
            recs.append(("crew", "medium",
                         "Match weather limits to crew experience and keep experienced crew "
                         "available via radio"))

        if len(route) > LONG_ROUTE_WAYPOINTS:
            recs.append(("timing", "medium",
                         "Long passage: plan a rest stop at a safe harbor along the route"))

        recs.append(("equipment", "medium", STANDARD_RECOMMENDATIONS[1]))
        recs.append(("preparation", "medium", STANDARD_RECOMMENDATIONS[0]))
        recs.append(("communication", "medium", STANDARD_RECOMMENDATIONS[2]))
        recs.append(("timing", "medium", STANDARD_RECOMMENDATIONS[3]))
        return recs

    # -- Single-purpose checks -------------------------------------------------

    def check_depth(
        self,
        location: Waypoint,
        charted_depth: float,
        vessel_draft: float,
        tidal_height: float = 0.0,
        crew_experience: str | None = None,
        user_id: str | None = None,
    ) -> tuple[str, DepthCalculation]:
        """Return (request_id, calculation) for one location."""
        validate_waypoint(location)
        validate_crew_experience(crew_experience)
        request_id = str(uuid.uuid4())

        clearance = None
        if crew_experience is not None and vessel_draft > 0:
            clearance = self.depth.adjust_for_crew_experience(
                self.depth.minimum_clearance(vessel_draft), crew_experience)
        calc = self.depth.calculate_depth_safety(
            location, charted_depth, vessel_draft, tidal_height, minimum_clearance=clearance)

        self.audit.log_data_source(request_id, "depth", "Charted depth (caller supplied)",
                                   "medium", location)
        if calc.severity in ("critical", "high"):
            self.audit.log_hazard_detected(request_id, user_id, "shallow_water", location,
                                           calc.severity, calc.recommendation)
        self.audit.log_recommendation(request_id, user_id, "route",
                                      "critical" if calc.severity == "critical" else "medium",
                                      calc.recommendation)
        return request_id, calc

    async def check_restricted_areas(
        self,
        waypoints: Sequence[Waypoint],
        user_id: str | None = None,
    ) -> tuple[str, list[RestrictedArea]]:
        """Return (request_id, conflicting areas) for a list of waypoints."""
        validate_route(waypoints)
        request_id = str(uuid.uuid4())

        await self.areas.ensure_fresh_data()
        conflicts = list(self.areas.check_route(list(waypoints)).values())

        for area in conflicts:
            location = min(waypoints, key=lambda p: self.areas.calculate_distance_to_area(p, area))
            self.audit.log_hazard_detected(
                request_id, user_id, "restricted_area", location,
                AREA_HAZARD_SEVERITY.get(area.type, "moderate"),
                f"Route passes through {area.name}")
        return request_id, conflicts

    def apply_override(self, request: OverrideRequest) -> tuple[str, SafetyOverride]:
        """Return (request_id, override); raises OverrideRejected."""
        request_id = str(uuid.uuid4())
        override = self.overrides.apply_override(request, request_id=request_id)
        log.debug("override_request_handled", request_id=request_id, override_id=override.id)
        return request_id, override
