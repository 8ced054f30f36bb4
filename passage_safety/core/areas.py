"""Restricted area registry: geofence catalog and route conflict checks.

Areas are keyed by id. The registry starts from a built-in default set and
can be overlaid from an AreaStore: store rows win by id, defaults missing
from the store are kept as fallback. Refresh is lazy (pull before query once
the interval has elapsed), never a background timer.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterable

import structlog

from passage_safety.core import geo
from passage_safety.core.models import (
    AreaSchedule,
    GeographicBounds,
    RefreshResult,
    RestrictedArea,
    Waypoint,
)

if TYPE_CHECKING:
    from passage_safety.storage.base import AreaStore

log = structlog.get_logger()

# Route segments are checked at this many intervals (21 points incl. ends).
DEFAULT_SEGMENT_SAMPLES = 20

DEFAULT_REFRESH_INTERVAL_SECONDS = 300.0


DEFAULT_AREAS: tuple[RestrictedArea, ...] = (
    RestrictedArea(
        id="US-MIL-001",
        name="Naval Exercise Area - Cape Cod",
        type="military",
        bounds=GeographicBounds(north=42.5, south=42.0, east=-69.5, west=-70.5),
        description="Naval exercises may be in progress. Contact USCG before entering.",
        restrictions=(
            "Civilian vessels prohibited during active exercises",
            "Monitor VHF Channel 16 for notices",
            "Maintain 5nm standoff when exercises active",
        ),
        schedule=AreaSchedule(start="permanent", recurring="Variable - announced via NOTAM"),
        authority="US Navy / USCG",
        penalty="Federal offense - may result in vessel seizure",
    ),
    RestrictedArea(
        id="SANCTUARY-001",
        name="Stellwagen Bank National Marine Sanctuary",
        type="marine_sanctuary",
        bounds=GeographicBounds(north=42.75, south=42.08, east=-70.02, west=-70.60),
        description="Protected marine sanctuary. Special regulations apply.",
        restrictions=(
            "No discharge of any kind",
            "Speed restrictions may apply during whale season",
            "No anchoring in designated areas",
            "Report whale sightings to authorities",
        ),
        authority="NOAA National Marine Sanctuaries",
        penalty="Up to $100,000 per violation",
    ),
    RestrictedArea(
        id="SHIPPING-LANE-001",
        name="Boston TSS (Traffic Separation Scheme)",
        type="shipping_lane",
        bounds=GeographicBounds(north=42.45, south=42.25, east=-70.75, west=-70.95),
        description="Traffic Separation Scheme - IMO Collision Regulations apply.",
        restrictions=(
            "Cross at right angles to traffic flow",
            "Do not impede vessels in traffic lanes",
            "Avoid separation zone except when crossing",
            "Monitor VHF Channel 13 (bridge-to-bridge)",
        ),
        authority="IMO / USCG",
        penalty="Violation of COLREGS Rule 10",
    ),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_point(raw: Any) -> Waypoint:
    if isinstance(raw, dict):
        lat = raw.get("latitude", raw.get("lat"))
        lon = raw.get("longitude", raw.get("lon"))
        return Waypoint(latitude=float(lat), longitude=float(lon))
    lat, lon = raw
    return Waypoint(latitude=float(lat), longitude=float(lon))


def area_from_row(row: dict) -> RestrictedArea:
    """Build a RestrictedArea from a store row.

    Rows carry either a ``bounds`` mapping, flat north/south/east/west
    columns, or a ``polygon`` (a list or its JSON serialization). Optional
    fields may be missing. Raises KeyError/TypeError/ValueError on rows
    that cannot be interpreted at all.
    """
    bounds = None
    raw_bounds = row.get("bounds")
    if raw_bounds is None and all(row.get(k) is not None for k in ("north", "south", "east", "west")):
        raw_bounds = row
    if raw_bounds:
        bounds = GeographicBounds(
            north=float(raw_bounds["north"]),
            south=float(raw_bounds["south"]),
            east=float(raw_bounds["east"]),
            west=float(raw_bounds["west"]),
        )

    polygon: tuple[Waypoint, ...] = ()
    raw_polygon = row.get("polygon")
    if isinstance(raw_polygon, str):
        raw_polygon = json.loads(raw_polygon)
    if raw_polygon:
        polygon = tuple(_parse_point(p) for p in raw_polygon)

    raw_schedule = row.get("schedule") or {}
    schedule = AreaSchedule(
        start=raw_schedule.get("start") or row.get("schedule_start") or "permanent",
        end=raw_schedule.get("end") or row.get("schedule_end"),
        recurring=raw_schedule.get("recurring") or row.get("schedule_recurring"),
    )

    restrictions = row.get("restrictions") or ()
    if isinstance(restrictions, str):
        restrictions = json.loads(restrictions)

    return RestrictedArea(
        id=str(row["id"]),
        name=row.get("name") or str(row["id"]),
        type=row.get("type") or "other",
        description=row.get("description") or "",
        restrictions=tuple(restrictions),
        active=bool(row.get("active", True)),
        schedule=schedule,
        authority=row.get("authority") or "",
        bounds=bounds,
        polygon=polygon,
        penalty=row.get("penalty"),
    )


def _is_degenerate(area: RestrictedArea) -> bool:
    return area.bounds is None and len(area.polygon) < 3


class RestrictedAreaRegistry:
    """In-memory catalog of restricted areas with optional store refresh.

    Single writer per process. Query methods return fresh lists, never the
    internal mapping.
    """

    def __init__(
        self,
        store: AreaStore | None = None,
        *,
        default_areas: Iterable[RestrictedArea] = DEFAULT_AREAS,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        segment_samples: int = DEFAULT_SEGMENT_SAMPLES,
        clock: Callable[[], datetime] = _utcnow,
        logger: Any = None,
    ) -> None:
        self._store = store
        self._refresh_interval = timedelta(seconds=refresh_interval_seconds)
        self._segment_samples = max(1, segment_samples)
        self._clock = clock
        self._log = logger or log
        self._defaults: dict[str, RestrictedArea] = {a.id: a for a in default_areas}
        self._areas: dict[str, RestrictedArea] = dict(self._defaults)
        self._last_refresh: datetime | None = None

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    # -- Conflict queries ------------------------------------------------------

    def check_waypoint(self, point: Waypoint) -> list[RestrictedArea]:
        """Active areas containing the point."""
        conflicts = []
        for area in self._areas.values():
            if not area.active:
                continue
            if area.bounds is not None:
                if geo.point_in_bounds(point, area.bounds):
                    conflicts.append(area)
            elif area.polygon:
                if geo.point_in_polygon(point, area.polygon):
                    conflicts.append(area)
        return conflicts

    def check_line_segment(self, start: Waypoint, end: Waypoint) -> list[RestrictedArea]:
        """Active areas touched by any sample point along the segment."""
        found: dict[str, RestrictedArea] = {}
        for i in range(self._segment_samples + 1):
            sample = geo.interpolate(start, end, i / self._segment_samples)
            for area in self.check_waypoint(sample):
                found.setdefault(area.id, area)
        return list(found.values())

    def check_route(self, waypoints: list[Waypoint]) -> dict[str, RestrictedArea]:
        """All areas hit by a waypoint or by a sampled leg, keyed by id."""
        conflicts: dict[str, RestrictedArea] = {}
        for point in waypoints:
            for area in self.check_waypoint(point):
                conflicts[area.id] = area

        for start, end in zip(waypoints, waypoints[1:]):
            for area in self.check_line_segment(start, end):
                conflicts[area.id] = area

        return conflicts

    def calculate_distance_to_area(self, point: Waypoint, area: RestrictedArea) -> float:
        """Nautical miles from the point to the area edge, 0 when inside.

        Areas with no usable geometry are infinitely far away.
        """
        if area.bounds is not None:
            return self._distance_to_bounds(point, area.bounds)
        return self._distance_to_polygon(point, area.polygon)

    @staticmethod
    def _distance_to_bounds(point: Waypoint, bounds: GeographicBounds) -> float:
        if geo.point_in_bounds(point, bounds):
            return 0.0

        lat_dist = min(abs(point.latitude - bounds.north), abs(point.latitude - bounds.south))
        lon_dist = min(abs(point.longitude - bounds.east), abs(point.longitude - bounds.west))

        # Flat-Earth conversion, one degree of latitude = 60 nm.
        lat_nm = lat_dist * 60
        lon_nm = lon_dist * 60 * math.cos(math.radians(point.latitude))
        return min(lat_nm, lon_nm)

    @staticmethod
    def _distance_to_polygon(point: Waypoint, polygon: tuple[Waypoint, ...]) -> float:
        if geo.point_in_polygon(point, polygon):
            return 0.0

        best = math.inf
        n = len(polygon)
        for i in range(n):
            d = geo.distance_to_line_segment_nm(point, polygon[i], polygon[(i + 1) % n])
            best = min(best, d)
        return best

    # -- Catalog management ----------------------------------------------------

    def add_restricted_area(self, area: RestrictedArea) -> None:
        """Insert or replace by id."""
        if _is_degenerate(area):
            self._log.warning("restricted_area_degenerate", area_id=area.id,
                              polygon_vertices=len(area.polygon))
        self._areas[area.id] = area

    def remove_restricted_area(self, area_id: str) -> bool:
        return self._areas.pop(area_id, None) is not None

    def get_area(self, area_id: str) -> RestrictedArea | None:
        return self._areas.get(area_id)

    def get_active_areas(self) -> list[RestrictedArea]:
        return [a for a in self._areas.values() if a.active]

    def get_areas_by_type(self, area_type: str) -> list[RestrictedArea]:
        return [a for a in self._areas.values() if a.type == area_type and a.active]

    # -- Backing store ---------------------------------------------------------

    def needs_refresh(self) -> bool:
        if self._store is None:
            return False
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh > self._refresh_interval

    async def refresh_from_store(self) -> RefreshResult:
        """Reload areas from the store, keeping last known good state on failure."""
        if self._store is None:
            return RefreshResult(ok=False, error="no area store configured")

        self._last_refresh = self._clock()
        try:
            rows = await self._store.query_active_areas()
        except Exception as exc:
            self._log.error("restricted_area_refresh_failed", error=str(exc),
                            areas_kept=len(self._areas), exc_info=True)
            return RefreshResult(ok=False, error=str(exc))

        loaded: dict[str, RestrictedArea] = {}
        for row in rows:
            try:
                area = area_from_row(row)
            except (KeyError, TypeError, ValueError) as exc:
                self._log.warning("restricted_area_row_skipped",
                                  row_id=row.get("id") if isinstance(row, dict) else None,
                                  error=str(exc))
                continue
            if _is_degenerate(area):
                self._log.warning("restricted_area_degenerate", area_id=area.id,
                                  polygon_vertices=len(area.polygon))
            loaded[area.id] = area

        merged = dict(self._defaults)
        merged.update(loaded)
        self._areas = merged

        self._log.info("restricted_areas_refreshed", from_store=len(loaded),
                       total=len(merged))
        return RefreshResult(ok=True, areas_loaded=len(loaded))

    async def ensure_fresh_data(self) -> RefreshResult | None:
        """Refresh if the interval has elapsed. None when no refresh was due."""
        if not self.needs_refresh():
            return None
        return await self.refresh_from_store()
