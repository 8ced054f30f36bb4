"""Safety check API endpoints.

This is the thin FastAPI adapter. It parses JSON requests into internal
models, calls the analyzer, and maps domain errors to HTTP statuses:
InvalidInput -> 400, OverrideRejected -> 422.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from passage_safety.core.errors import InvalidInput, OverrideRejected, SafetyError
from passage_safety.core.models import OverrideRequest, WeatherDataPoint, Waypoint

router = APIRouter(prefix="/api/v1/safety")


def _error(exc: SafetyError) -> JSONResponse:
    status = 422 if isinstance(exc, OverrideRejected) else 400
    return JSONResponse(content=exc.to_dict(), status_code=status)


async def _json_body(request: Request) -> dict:
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidInput("invalid JSON") from None
    if not isinstance(body, dict):
        raise InvalidInput("request body must be a JSON object")
    return body


def _number(data: dict, key: str, default: Any = ...) -> Any:
    value = data.get(key)
    if value is None:
        if default is ...:
            raise InvalidInput(f"{key} is required", field=key)
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{key} must be a number", field=key, value=value)
    if not math.isfinite(value):
        raise InvalidInput(f"{key} must be a finite number", field=key, value=str(value))
    return float(value)


def _parse_waypoint(data: Any, key: str = "location") -> Waypoint:
    if not isinstance(data, dict):
        raise InvalidInput(f"{key} must be an object with latitude and longitude", field=key)
    return Waypoint(
        latitude=_number(data, "latitude"),
        longitude=_number(data, "longitude"),
        name=data.get("name"),
    )


def _parse_route(data: dict, key: str) -> list[Waypoint]:
    raw = data.get(key)
    if not isinstance(raw, list) or not raw:
        raise InvalidInput(f"{key} must be a non-empty array of waypoints", field=key)
    return [_parse_waypoint(p, key) for p in raw]


def _parse_weather_point(data: Any) -> WeatherDataPoint:
    if not isinstance(data, dict):
        raise InvalidInput("weather entries must be objects", field="weather")
    try:
        time = datetime.fromisoformat(str(data.get("time", "")).replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInput("weather time must be an ISO 8601 timestamp", field="time",
                           value=data.get("time")) from None
    if time.tzinfo is None:
        time = time.replace(tzinfo=timezone.utc)
    return WeatherDataPoint(
        time=time,
        location=_parse_waypoint(data.get("location")),
        wind_speed=_number(data, "wind_speed"),
        wind_gust=_number(data, "wind_gust", None),
        wave_height=_number(data, "wave_height", None),
        pressure=_number(data, "pressure", None),
        visibility=_number(data, "visibility", None),
        precipitation=_number(data, "precipitation", None),
    )


def _parse_depths(data: dict) -> list[float | None] | None:
    raw = data.get("depths")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InvalidInput("depths must be an array", field="depths")
    return [None if d is None else _number({"depths": d}, "depths") for d in raw]


@router.post("/route")
async def check_route_safety(request: Request) -> JSONResponse:
    """Full route check: restricted areas, depth, weather and crew.

    Body: {"route": [{latitude, longitude, name?}, ...], "vessel_draft"?,
    "crew_experience"?, "depths"?, "tidal_height"?, "weather"?,
    "planned_duration_hours"?, "user_id"?}
    """
    from passage_safety.main import get_services

    analyzer = get_services(request).analyzer
    try:
        body = await _json_body(request)
        weather = body.get("weather")
        if weather is not None and not isinstance(weather, list):
            raise InvalidInput("weather must be an array", field="weather")

        report = await analyzer.check_route_safety(
            _parse_route(body, "route"),
            _number(body, "vessel_draft", None),
            body.get("crew_experience"),
            depths=_parse_depths(body),
            tidal_height=_number(body, "tidal_height", 0.0),
            weather=[_parse_weather_point(w) for w in weather] if weather else None,
            planned_duration_hours=_number(body, "planned_duration_hours", None),
            user_id=body.get("user_id"),
        )
    except SafetyError as exc:
        return _error(exc)
    return JSONResponse(content=report.to_dict())


@router.post("/depth")
async def check_depth(request: Request) -> JSONResponse:
    """Grounding risk at one location.

    Body: {"location", "charted_depth", "vessel_draft", "tidal_height"?,
    "crew_experience"?, "user_id"?}
    """
    from passage_safety.main import get_services

    services = get_services(request)
    try:
        body = await _json_body(request)
        vessel_draft = _number(body, "vessel_draft")
        request_id, calc = services.analyzer.check_depth(
            _parse_waypoint(body.get("location")),
            _number(body, "charted_depth"),
            vessel_draft,
            _number(body, "tidal_height", 0.0),
            crew_experience=body.get("crew_experience"),
            user_id=body.get("user_id"),
        )
    except SafetyError as exc:
        return _error(exc)

    result = calc.to_dict()
    result["request_id"] = request_id
    result["minimum_safe_depth"] = services.depth.calculate_minimum_safe_depth(vessel_draft)
    return JSONResponse(content=result)


@router.post("/restricted-areas")
async def check_restricted_areas(request: Request) -> JSONResponse:
    """Restricted areas crossed by a list of waypoints.

    Body: {"waypoints": [...], "user_id"?}
    """
    from passage_safety.main import get_services

    analyzer = get_services(request).analyzer
    try:
        body = await _json_body(request)
        request_id, conflicts = await analyzer.check_restricted_areas(
            _parse_route(body, "waypoints"), user_id=body.get("user_id"))
    except SafetyError as exc:
        return _error(exc)

    return JSONResponse(content={
        "request_id": request_id,
        "count": len(conflicts),
        "conflicts": [a.to_dict() for a in conflicts],
    })


@router.post("/overrides")
async def apply_override(request: Request) -> JSONResponse:
    """Record a user's decision to override a warning.

    Body: {"user_id", "warning_id", "warning_type", "justification",
    "witnessed_by"?, "expiration_hours"?}
    """
    from passage_safety.main import get_services

    analyzer = get_services(request).analyzer
    try:
        body = await _json_body(request)
        for key in ("user_id", "warning_id", "warning_type"):
            if not isinstance(body.get(key), str) or not body[key]:
                raise InvalidInput(f"{key} is required", field=key)

        override_request = OverrideRequest(
            user_id=body["user_id"],
            warning_id=body["warning_id"],
            warning_type=body["warning_type"],
            justification=str(body.get("justification") or ""),
            witnessed_by=body.get("witnessed_by"),
            expiration_hours=_number(body, "expiration_hours", None),
        )
        request_id, override = analyzer.apply_override(override_request)
    except SafetyError as exc:
        return _error(exc)

    return JSONResponse(
        content={"request_id": request_id, "override": override.to_dict()},
        status_code=201,
    )


@router.get("/overrides/{warning_id}")
async def get_override(request: Request, warning_id: str) -> JSONResponse:
    from passage_safety.main import get_services

    overrides = get_services(request).overrides
    override = overrides.get_override(warning_id)
    if override is None:
        return JSONResponse(content={"error": "no override for warning"}, status_code=404)
    return JSONResponse(content={
        "override": override.to_dict(),
        "active": overrides.is_warning_overridden(warning_id),
    })


@router.delete("/overrides/{override_id}")
async def revoke_override(
    request: Request,
    override_id: str,
    reason: str = Query("revoked by user"),
) -> JSONResponse:
    from passage_safety.main import get_services

    if not get_services(request).overrides.revoke_override(override_id, reason):
        return JSONResponse(content={"error": "override not found"}, status_code=404)
    return JSONResponse(content={"revoked": override_id})


@router.get("/audit/recent")
async def recent_audit(request: Request, count: int = Query(100, ge=1, le=1000)) -> dict:
    from passage_safety.main import get_services

    entries = get_services(request).audit.get_recent_logs(count)
    return {"entries": [e.to_dict() for e in entries]}


@router.get("/audit/critical")
async def critical_audit(
    request: Request,
    hours: float = Query(24, gt=0),
    limit: int = Query(100, ge=1, le=1000),
) -> dict:
    """Critical entries from the last ``hours``, newest first."""
    from passage_safety.main import get_services

    end = datetime.now(timezone.utc)
    entries = await get_services(request).audit.query_critical_logs(
        end - timedelta(hours=hours), end, limit)
    return {"entries": [e.to_dict() for e in entries]}


@router.get("/audit/requests/{request_id}")
async def request_audit(request: Request, request_id: str) -> dict:
    from passage_safety.main import get_services

    entries = await get_services(request).audit.query_logs_by_request_id(request_id)
    return {"request_id": request_id, "entries": [e.to_dict() for e in entries]}
