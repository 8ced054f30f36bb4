"""Severe weather pattern detection and passage delay advice.

Detectors run in a fixed priority order and the first match wins:
tropical cyclone, gale series, rapid pressure drop, cold front.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from passage_safety.core import geo
from passage_safety.core.models import (
    DelayRecommendation,
    PredictedImpact,
    SevereWeatherPattern,
    WeatherDataPoint,
    WeatherWindow,
)


@dataclass(frozen=True)
class WeatherThresholds:
    gale_wind_speed: float = 34  # knots
    storm_wind_speed: float = 48  # knots
    hurricane_wind_speed: float = 64  # knots
    small_craft_wind_speed: float = 20  # knots
    small_craft_wave_height: float = 6  # feet
    dangerous_wave_height: float = 12  # feet
    low_visibility: float = 1  # nautical miles
    rapid_pressure_drop: float = 6  # millibars per 3 hours


# Saffir-Simpson style bands, highest first.
TROPICAL_INTENSITY_BANDS = (
    (137, "Category 5 Hurricane"),
    (113, "Category 4 Hurricane"),
    (96, "Category 3 Hurricane"),
    (83, "Category 2 Hurricane"),
    (64, "Category 1 Hurricane"),
    (39, "Tropical Storm"),
    (34, "Tropical Depression"),
)

# Hours to wait once a pattern is detected.
PATTERN_DELAY_HOURS = {
    "tropical_cyclone": 72,
    "gale_series": 48,
    "rapid_pressure_drop": 24,
    "cold_front": 12,
    "storm_system": 36,
}
DEFAULT_DELAY_HOURS = 24

# Gale series needs this many qualifying points; more than the second
# value means shelter rather than delay.
GALE_MIN_POINTS = 3
GALE_SHELTER_POINTS = 6

# Pressure readings are compared only when 2-4 hours apart.
PRESSURE_WINDOW_HOURS = (2.0, 4.0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def classify_tropical_intensity(max_wind: float) -> str:
    for floor, label in TROPICAL_INTENSITY_BANDS:
        if max_wind >= floor:
            return label
    return "Developing System"


class WeatherPatternDetector:
    """Classifies a forecast series into at most one severe pattern."""

    def __init__(
        self,
        thresholds: WeatherThresholds | None = None,
        clock: Callable[[], datetime] = _utcnow,
        **overrides: float,
    ) -> None:
        base = thresholds or WeatherThresholds()
        self.thresholds = replace(base, **overrides) if overrides else base
        self._clock = clock

    def analyze_pattern(self, series: Sequence[WeatherDataPoint]) -> SevereWeatherPattern | None:
        if not series:
            return None

        for detect in (
            self._detect_tropical_cyclone,
            self._detect_gale_series,
            self._detect_rapid_pressure_drop,
            self._detect_cold_front,
        ):
            pattern = detect(series)
            if pattern is not None:
                return pattern
        return None

    def _detect_tropical_cyclone(self, series: Sequence[WeatherDataPoint]) -> SevereWeatherPattern | None:
        hits = [d for d in series if d.wind_speed >= self.thresholds.hurricane_wind_speed]
        if not hits:
            return None

        track = tuple(d.location for d in hits)
        max_wind = max(d.wind_speed for d in hits)
        return SevereWeatherPattern(
            type="tropical_cyclone",
            name="Detected Tropical System",
            current_position=hits[0].location,
            forecast_track=track,
            affected_area=geo.bounds_of(track),
            intensity=classify_tropical_intensity(max_wind),
            movement_speed=_mean_leg_distance(track),
            movement_direction=geo.bearing_deg(track[0], track[-1]) if len(track) > 1 else 0.0,
            predicted_impact=PredictedImpact(
                timing=hits[0].time,
                wind_speed=max_wind,
                wave_height=max(d.wave_height or 0 for d in hits),
                recommended_action="shelter_immediately",
            ),
            last_updated=self._clock(),
        )

    def _detect_gale_series(self, series: Sequence[WeatherDataPoint]) -> SevereWeatherPattern | None:
        # Qualifying points need not be consecutive.
        hits = [d for d in series if d.wind_speed >= self.thresholds.gale_wind_speed]
        if len(hits) < GALE_MIN_POINTS:
            return None

        max_wind = max(d.wind_speed for d in hits)
        return SevereWeatherPattern(
            type="gale_series",
            affected_area=geo.bounds_of([d.location for d in hits]),
            intensity=f"Gale force winds {max_wind:g} knots",
            movement_speed=15,
            movement_direction=0,
            predicted_impact=PredictedImpact(
                timing=hits[0].time,
                wind_speed=max_wind,
                wave_height=max(d.wave_height or 0 for d in hits),
                recommended_action=(
                    "shelter_immediately" if len(hits) > GALE_SHELTER_POINTS else "delay_departure"
                ),
            ),
            last_updated=self._clock(),
        )

    def _detect_rapid_pressure_drop(self, series: Sequence[WeatherDataPoint]) -> SevereWeatherPattern | None:
        readings = [d for d in series if d.pressure is not None]
        low, high = PRESSURE_WINDOW_HOURS

        for prev, cur in zip(readings, readings[1:]):
            hours = (cur.time - prev.time).total_seconds() / 3600
            if not low <= hours <= high:
                continue
            drop_per_3h = (prev.pressure - cur.pressure) / hours * 3
            if drop_per_3h < self.thresholds.rapid_pressure_drop:
                continue

            return SevereWeatherPattern(
                type="rapid_pressure_drop",
                affected_area=geo.bounds_of([prev.location, cur.location]),
                intensity=f"Pressure dropping {drop_per_3h:.1f} mb/3hr",
                movement_speed=20,
                movement_direction=0,
                predicted_impact=PredictedImpact(
                    timing=cur.time,
                    wind_speed=40,
                    wave_height=10,
                    recommended_action="delay_departure",
                ),
                data_source="Barometric Pressure Analysis",
                last_updated=self._clock(),
            )
        return None

    def _detect_cold_front(self, series: Sequence[WeatherDataPoint]) -> SevereWeatherPattern | None:
        strong = [d for d in series if d.wind_speed > self.thresholds.small_craft_wind_speed]
        if len(strong) <= 2:
            return None

        return SevereWeatherPattern(
            type="cold_front",
            affected_area=geo.bounds_of([d.location for d in strong]),
            intensity="Cold front passage",
            movement_speed=25,
            movement_direction=270,  # west to east
            predicted_impact=PredictedImpact(
                timing=strong[0].time,
                wind_speed=max(d.wind_speed for d in strong),
                wave_height=8,
                recommended_action="monitor_closely",
            ),
            data_source="Weather Pattern Analysis",
            last_updated=self._clock(),
        )

    def check_weather_window(
        self,
        series: Sequence[WeatherDataPoint],
        duration_hours: float,
        max_wind: float = 25,
        max_wave: float = 6,
    ) -> WeatherWindow:
        """Find a run of acceptable points long enough for the passage.

        Each data point stands for one hour: the run length is a point
        count, not elapsed time.
        """
        if not series:
            return WeatherWindow(exists=False, confidence="none")

        run_start: datetime | None = None
        run_length = 0
        any_run = False

        for point in series:
            acceptable = point.wind_speed <= max_wind and (point.wave_height or 0) <= max_wave
            if not acceptable:
                run_start = None
                run_length = 0
                continue

            if run_start is None:
                run_start = point.time
            run_length += 1
            any_run = True

            if run_length >= duration_hours:
                return WeatherWindow(exists=True, confidence="high", start=run_start, end=point.time)

        return WeatherWindow(exists=False, confidence="partial" if any_run else "none")

    def recommend_delay(
        self,
        series: Sequence[WeatherDataPoint],
        planned_duration_hours: float,
    ) -> DelayRecommendation:
        pattern = self.analyze_pattern(series)
        if pattern is not None:
            delay = PATTERN_DELAY_HOURS.get(pattern.type, DEFAULT_DELAY_HOURS)
            return DelayRecommendation(
                should_delay=True,
                reason=(
                    f"Severe weather detected: {pattern.intensity}. "
                    f"{pattern.predicted_impact.recommended_action}"
                ),
                suggested_delay_hours=delay,
                alternative_departure=self._clock() + timedelta(hours=delay),
            )

        window = self.check_weather_window(series, planned_duration_hours)
        if not window.exists:
            return DelayRecommendation(
                should_delay=True,
                reason=(
                    f"No adequate weather window found for {planned_duration_hours:g}-hour passage. "
                    f"Winds exceed safe limits or waves too high."
                ),
                suggested_delay_hours=DEFAULT_DELAY_HOURS,
            )

        return DelayRecommendation(
            should_delay=False,
            reason="Weather conditions acceptable for planned passage",
            suggested_delay_hours=0,
        )


def _mean_leg_distance(track: Sequence) -> float:
    if len(track) < 2:
        return 0.0
    legs = [geo.haversine_distance_nm(a, b) for a, b in zip(track, track[1:])]
    return sum(legs) / len(legs)
