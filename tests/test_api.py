"""Tests for the safety and monitoring API endpoints."""

from __future__ import annotations

import json

import pytest

STELLWAGEN_CROSSING = [
    {"latitude": 41.5, "longitude": -70.3, "name": "Cape Cod Bay"},
    {"latitude": 43.0, "longitude": -70.3, "name": "Gulf of Maine"},
]


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["restricted_areas"] == 3
    assert data["audit_pending_writes"] == 0
    assert data["overrides"]["total"] == 0


@pytest.mark.asyncio
async def test_config_endpoint(client):
    resp = await client.get("/api/v1/config")
    assert resp.status_code == 200
    data = resp.json()
    assert data["depth"]["minimum_clearance_percent"] == 20.0
    assert data["weather"]["gale_wind_speed"] == 34
    assert data["areas"]["segment_samples"] == 20


@pytest.mark.asyncio
async def test_route_check(client):
    resp = await client.post("/api/v1/safety/route", json={
        "route": STELLWAGEN_CROSSING,
        "vessel_draft": 6,
        "crew_experience": "intermediate",
        "user_id": "skipper-1",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["route_analyzed"]
    assert data["total_waypoints"] == 2
    assert data["go_no_go"] == "CAUTION"
    assert data["crew_experience_considered"]
    assert "SANCTUARY-001" in {a["id"] for a in data["restricted_areas"]}
    assert data["request_id"]


@pytest.mark.asyncio
async def test_route_check_with_weather_and_depths(client):
    resp = await client.post("/api/v1/safety/route", json={
        "route": [{"latitude": 40.0, "longitude": -72.0}],
        "vessel_draft": 6,
        "depths": [6],
        "weather": [
            {"time": f"2025-06-01T0{h}:00:00Z", "location": {"latitude": 40.0, "longitude": -72.0},
             "wind_speed": 40, "wave_height": 10}
            for h in range(3)
        ],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["go_no_go"] == "NO-GO"
    assert {h["type"] for h in data["hazards"]} == {"shallow_water", "weather"}
    assert data["weather_pattern"]["type"] == "gale_series"
    assert data["confidence"] == "high"


@pytest.mark.asyncio
async def test_route_check_audit_trail(client, services):
    resp = await client.post("/api/v1/safety/route", json={"route": STELLWAGEN_CROSSING})
    request_id = resp.json()["request_id"]
    await services.audit.flush_pending_writes()

    resp = await client.get(f"/api/v1/safety/audit/requests/{request_id}")
    assert resp.status_code == 200
    actions = [e["action"] for e in resp.json()["entries"]]
    assert "hazard_detected" in actions
    assert "route_analyzed" in actions


@pytest.mark.asyncio
@pytest.mark.parametrize("body,fragment", [
    ({"route": []}, "non-empty"),
    ({"route": [{"latitude": 95, "longitude": -70}]}, "Invalid latitude: 95"),
    ({"route": [{"latitude": "north", "longitude": -70}]}, "latitude must be a number"),
    ({"route": [{"latitude": 42, "longitude": -70}], "crew_experience": "expert"}, "crew experience"),
])
async def test_route_check_invalid_input(client, body, fragment):
    resp = await client.post("/api/v1/safety/route", json=body)
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "INVALID_INPUT"
    assert fragment in data["message"]


@pytest.mark.asyncio
async def test_invalid_json(client):
    resp = await client.post(
        "/api/v1/safety/route",
        content=b"not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "invalid JSON"


@pytest.mark.asyncio
async def test_depth_check(client):
    resp = await client.post("/api/v1/safety/depth", json={
        "location": {"latitude": 41.52, "longitude": -70.67},
        "charted_depth": 8,
        "vessel_draft": 6.5,
        "tidal_height": -0.5,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["severity"] == "high"
    assert data["clearance_available"] == pytest.approx(1.0)
    assert data["minimum_safe_depth"] == pytest.approx(8.5)
    assert data["request_id"]


@pytest.mark.asyncio
async def test_depth_check_negative_depth(client):
    resp = await client.post("/api/v1/safety/depth", json={
        "location": {"latitude": 41.52, "longitude": -70.67},
        "charted_depth": -3,
        "vessel_draft": 6,
    })
    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == "charted_depth"


@pytest.mark.asyncio
@pytest.mark.parametrize("path,body,field", [
    ("/api/v1/safety/depth",
     b'{"location": {"latitude": 41.52, "longitude": -70.67}, "charted_depth": NaN, "vessel_draft": 6}',
     "charted_depth"),
    ("/api/v1/safety/depth",
     b'{"location": {"latitude": 41.52, "longitude": -70.67}, "charted_depth": 8, "vessel_draft": Infinity}',
     "vessel_draft"),
    ("/api/v1/safety/route",
     b'{"route": [{"latitude": 40.0, "longitude": -72.0}], "vessel_draft": 6, "depths": [NaN]}',
     "depths"),
])
async def test_non_finite_numbers_rejected(client, path, body, field):
    resp = await client.post(path, content=body, headers={"content-type": "application/json"})
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "INVALID_INPUT"
    assert data["details"]["field"] == field


@pytest.mark.asyncio
async def test_weather_times_without_offset_are_utc(client):
    location = {"latitude": 40.0, "longitude": -72.0}
    resp = await client.post("/api/v1/safety/route", json={
        "route": [location],
        "weather": [
            {"time": "2025-06-01T00:00:00", "location": location,
             "wind_speed": 10, "wave_height": 2, "pressure": 1010},
            {"time": "2025-06-01T03:00:00Z", "location": location,
             "wind_speed": 10, "wave_height": 2, "pressure": 1000},
        ],
    })
    assert resp.status_code == 200
    assert resp.json()["weather_pattern"]["type"] == "rapid_pressure_drop"


@pytest.mark.asyncio
async def test_depths_must_match_route(client):
    resp = await client.post("/api/v1/safety/route", json={
        "route": STELLWAGEN_CROSSING,
        "vessel_draft": 6,
        "depths": [12],
    })
    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == "depths"


@pytest.mark.asyncio
async def test_restricted_area_check(client):
    resp = await client.post("/api/v1/safety/restricted-areas", json={
        "waypoints": STELLWAGEN_CROSSING,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["count"] == len(data["conflicts"])
    assert "SANCTUARY-001" in {a["id"] for a in data["conflicts"]}


@pytest.mark.asyncio
async def test_override_lifecycle(client):
    resp = await client.post("/api/v1/safety/overrides", json={
        "user_id": "skipper-1",
        "warning_id": "restricted_area:SANCTUARY-001",
        "warning_type": "restricted_area",
        "justification": "Transit permit on board",
        "witnessed_by": "first-mate",
        "expiration_hours": 12,
    })
    assert resp.status_code == 201
    override = resp.json()["override"]
    assert override["expires_at"] is not None

    resp = await client.get("/api/v1/safety/overrides/restricted_area:SANCTUARY-001")
    assert resp.status_code == 200
    assert resp.json()["active"]

    resp = await client.post("/api/v1/safety/route", json={"route": STELLWAGEN_CROSSING})
    warnings = {w["id"]: w for w in resp.json()["warnings"]}
    assert warnings["restricted_area:SANCTUARY-001"]["overridden"]

    resp = await client.delete(f"/api/v1/safety/overrides/{override['id']}",
                               params={"reason": "permit expired"})
    assert resp.status_code == 200

    resp = await client.delete(f"/api/v1/safety/overrides/{override['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_override_rejected(client):
    resp = await client.post("/api/v1/safety/overrides", json={
        "user_id": "skipper-1",
        "warning_id": "W1",
        "warning_type": "shallow_water",
        "justification": "It will be fine, trust me",
    })
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"] == "OVERRIDE_REJECTED"
    assert data["details"]["requires_witness"]


@pytest.mark.asyncio
async def test_override_missing_fields(client):
    resp = await client.post("/api/v1/safety/overrides", json={"user_id": "skipper-1"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_override(client):
    resp = await client.get("/api/v1/safety/overrides/nothing-here")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_critical_audit_view(client, services):
    await client.post("/api/v1/safety/overrides", json={
        "user_id": "skipper-1",
        "warning_id": "W1",
        "warning_type": "crew_fatigue",
        "justification": "Crew rested overnight at anchor",
    })
    await services.audit.flush_pending_writes()

    resp = await client.get("/api/v1/safety/audit/critical", params={"hours": 1})
    assert resp.status_code == 200
    actions = [e["action"] for e in resp.json()["entries"]]
    assert actions == ["override_applied"]

    resp = await client.get("/api/v1/safety/audit/recent", params={"count": 5})
    assert len(resp.json()["entries"]) == 1


@pytest.mark.asyncio
async def test_audit_written_to_sink(client, services, tmp_path):
    await client.post("/api/v1/safety/route", json={"route": STELLWAGEN_CROSSING})
    await services.audit.flush_pending_writes()

    lines = []
    for path in sorted((tmp_path / "audit").rglob("audit.jsonl")):
        lines.extend(path.read_text().splitlines())
    assert len(lines) == len(services.audit.export_logs())
    assert json.loads(lines[-1])["action"] == "route_analyzed"
