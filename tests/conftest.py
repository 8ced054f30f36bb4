"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from passage_safety.config import AppConfig
from passage_safety.core.audit import SafetyAuditLog
from passage_safety.core.models import WeatherDataPoint, Waypoint
from passage_safety.main import app, build_services


class FakeClock:
    """Settable UTC clock for expiry and refresh-interval tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_series(
    winds: list[float],
    waves: list[float] | None = None,
    pressures: list[float] | None = None,
    start: datetime | None = None,
    lat: float = 42.0,
    lon: float = -70.0,
    step_hours: float = 1.0,
) -> list[WeatherDataPoint]:
    """Hourly weather points at one location."""
    start = start or datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)
    points = []
    for i, wind in enumerate(winds):
        points.append(WeatherDataPoint(
            time=start + timedelta(hours=i * step_hours),
            location=Waypoint(lat, lon),
            wind_speed=wind,
            wave_height=waves[i] if waves else None,
            pressure=pressures[i] if pressures else None,
        ))
    return points


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit(clock):
    return SafetyAuditLog(clock=clock)


@pytest.fixture
def services(tmp_path):
    """Services wired with a temp audit directory, installed on the app."""
    config = AppConfig()
    config.audit.sink_dir = str(tmp_path / "audit")
    config.logging.level = "warning"

    services = build_services(config)
    app.state.services = services
    yield services
    app.state.services = None


@pytest.fixture
async def client(services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
