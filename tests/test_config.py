"""Tests for configuration loading and application startup."""

from __future__ import annotations

import pytest
import structlog
import yaml

from passage_safety.config import AppConfig, load_config
from passage_safety.core.models import Waypoint
from passage_safety.main import app, build_services, lifespan


def test_defaults(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    assert config == AppConfig()
    assert config.depth.minimum_absolute_clearance == 2.0
    assert config.areas.refresh_interval_seconds == 300
    assert config.audit.buffer_size == 1000


def test_yaml_sections(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "server": {"port": 9000},
        "depth": {"minimum_clearance_percent": 25},
        "weather": {"gale_wind_speed": 30, "not_a_field": 1},
        "audit": {"buffer_size": 50},
    }))

    config = load_config(path)
    assert config.server.port == 9000
    assert config.depth.minimum_clearance_percent == 25
    assert config.weather.gale_wind_speed == 30
    assert not hasattr(config.weather, "not_a_field")
    assert config.audit.buffer_size == 50


def test_env_overrides_win(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"server": {"port": 9000}}))
    monkeypatch.setenv("SAFETY_SERVER_PORT", "9100")
    monkeypatch.setenv("SAFETY_WEATHER_HURRICANE_WIND_SPEED", "60")
    monkeypatch.setenv("SAFETY_AREAS_STORE_PATH", "/etc/areas.yaml")
    monkeypatch.setenv("SAFETY_LOG_LEVEL", "debug")

    config = load_config(path)
    assert config.server.port == 9100
    assert config.weather.hurricane_wind_speed == 60.0
    assert config.areas.store_path == "/etc/areas.yaml"
    assert config.logging.level == "debug"


def test_build_services_applies_config():
    config = AppConfig()
    config.depth.minimum_absolute_clearance = 3.0
    config.weather.gale_wind_speed = 30
    config.audit.buffer_size = 5

    services = build_services(config)
    assert services.depth.minimum_clearance(6) == 3.0
    assert services.weather.thresholds.gale_wind_speed == 30
    assert services.areas.needs_refresh() is False
    assert services.audit.pending_writes() == 0


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


async def test_lifespan_loads_area_file_and_flushes_audit(tmp_path, monkeypatch, reset_structlog):
    areas = tmp_path / "areas.yaml"
    areas.write_text(yaml.safe_dump({"areas": [
        {"id": "ZONE-1", "name": "Exercise box", "type": "military",
         "bounds": {"north": 41, "south": 39, "east": -71, "west": -73}},
        {"id": "ZONE-2", "name": "Lifted", "type": "other", "active": False,
         "bounds": {"north": 1, "south": 0, "east": 1, "west": 0}},
    ]}))
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        "areas": {"store_path": str(areas)},
        "audit": {"sink_dir": str(tmp_path / "audit")},
        "logging": {"level": "warning"},
    }))
    monkeypatch.setenv("SAFETY_CONFIG", str(config_path))

    async with lifespan(app):
        services = app.state.services
        assert services.areas.get_area("ZONE-1") is not None
        assert services.areas.get_area("ZONE-2") is None
        assert services.areas.get_area("SANCTUARY-001") is not None

        _, conflicts = await services.analyzer.check_restricted_areas([Waypoint(40, -72)])
        assert [a.id for a in conflicts] == ["ZONE-1"]

    assert app.state.services is None
    assert list((tmp_path / "audit").rglob("audit.jsonl"))


async def test_lifespan_survives_broken_area_file(tmp_path, monkeypatch, reset_structlog):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        "areas": {"store_path": str(tmp_path / "missing.yaml")},
        "logging": {"level": "warning"},
    }))
    monkeypatch.setenv("SAFETY_CONFIG", str(config_path))

    async with lifespan(app):
        assert len(app.state.services.areas.get_active_areas()) == 3
