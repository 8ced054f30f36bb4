#!/usr/bin/env python3
"""Passage safety request simulator.

Posts sample passages to a running server and prints the verdicts.

Usage:
    # Every scenario once
    python -m tools.simulator.simulate --server http://localhost:8000

    # Load test: sanctuary crossings, 20 concurrent clients, 50 requests each
    python -m tools.simulator.simulate --scenario sanctuary --clients 20 --requests 50

    # Novice crew on a shoal approach
    python -m tools.simulator.simulate --scenario shoal --crew novice --draft 6.5
"""

from __future__ import annotations

import argparse
import asyncio
import random
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx


@dataclass
class SimClient:
    client_id: int
    sent: int = 0
    errors: int = 0
    verdicts: Counter = field(default_factory=Counter)


def jitter(lat: float, lon: float, max_deg: float = 0.01) -> dict:
    """A waypoint near (lat, lon), so repeated requests are not identical."""
    return {
        "latitude": round(lat + random.uniform(-max_deg, max_deg), 5),
        "longitude": round(lon + random.uniform(-max_deg, max_deg), 5),
    }


def weather_series(start: datetime, hours: int, wind: float, wave: float,
                   lat: float, lon: float, pressure_drop: float = 0.0) -> list[dict]:
    """Hourly forecast points with small random variation."""
    points = []
    for i in range(hours):
        points.append({
            "time": (start + timedelta(hours=i)).isoformat(),
            "location": jitter(lat, lon, 0.05),
            "wind_speed": max(0.0, round(wind + random.uniform(-3, 3), 1)),
            "wave_height": max(0.0, round(wave + random.uniform(-0.5, 0.5), 1)),
            "pressure": round(1015 - pressure_drop * i, 1),
        })
    return points


def open_water(args: argparse.Namespace) -> dict:
    """Boston Harbor to Provincetown, light air."""
    now = datetime.now(timezone.utc)
    return {
        "route": [jitter(42.35, -70.95), jitter(42.20, -70.55), jitter(42.05, -70.19)],
        "weather": weather_series(now, 12, wind=12, wave=2, lat=42.2, lon=-70.5),
    }


def sanctuary(args: argparse.Namespace) -> dict:
    """Straight north across Stellwagen Bank."""
    return {"route": [jitter(41.5, -70.3), jitter(43.0, -70.3)]}


def shoal(args: argparse.Namespace) -> dict:
    """Harbor approach with charted depths along the way."""
    route = [jitter(41.52, -70.67, 0.002) for _ in range(4)]
    return {
        "route": route,
        "vessel_draft": args.draft,
        "depths": [15.0, 10.0, round(args.draft + random.uniform(0.2, 1.5), 1), 12.0],
        "tidal_height": round(random.uniform(-0.5, 0.5), 1),
    }


def gale(args: argparse.Namespace) -> dict:
    """Offshore passage into a building gale with falling pressure."""
    now = datetime.now(timezone.utc)
    return {
        "route": [jitter(41.0, -69.5), jitter(40.0, -68.0)],
        "weather": weather_series(now, 8, wind=38, wave=10, lat=40.5, lon=-68.8,
                                  pressure_drop=2.5),
    }


SCENARIOS = {
    "open_water": open_water,
    "sanctuary": sanctuary,
    "shoal": shoal,
    "gale": gale,
}


async def run_client(
    client: httpx.AsyncClient,
    sim: SimClient,
    server_url: str,
    scenarios: list[str],
    args: argparse.Namespace,
) -> None:
    """Send ``args.requests`` route checks, cycling through scenarios."""
    for i in range(args.requests):
        name = scenarios[i % len(scenarios)]
        payload = SCENARIOS[name](args)
        payload["user_id"] = f"sim-{sim.client_id}"
        if args.crew:
            payload["crew_experience"] = args.crew

        try:
            resp = await client.post(f"{server_url}/api/v1/safety/route", json=payload)
        except httpx.RequestError:
            sim.errors += 1
            continue

        if resp.status_code != 200:
            sim.errors += 1
            if args.verbose:
                print(f"  [{name}] HTTP {resp.status_code}: {resp.text}")
            continue

        sim.sent += 1
        report = resp.json()
        sim.verdicts[report["go_no_go"]] += 1
        if args.verbose:
            print(f"  [{name}] {report['go_no_go']} ({report['safety_score']}), "
                  f"{len(report['hazards'])} hazards, request {report['request_id']}")


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    scenarios = list(SCENARIOS) if args.scenario == "all" else [args.scenario]
    sims = [SimClient(client_id=i) for i in range(args.clients)]

    print(f"Starting simulation: {args.clients} clients, {args.requests} requests each")
    print(f"  Scenarios: {', '.join(scenarios)}")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        tasks = [run_client(client, sim, args.server, scenarios, args) for sim in sims]
        await asyncio.gather(*tasks)

        elapsed = time.monotonic() - start
        total_sent = sum(s.sent for s in sims)
        total_errors = sum(s.errors for s in sims)
        verdicts = sum((s.verdicts for s in sims), Counter())

        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Route checks: {total_sent}")
        print(f"  Errors: {total_errors}")
        print(f"  Throughput: {total_sent / elapsed:.1f} checks/sec")
        for verdict, count in sorted(verdicts.items()):
            print(f"  {verdict}: {count}")

        # Check server health
        try:
            resp = await client.get(f"{args.server}/api/v1/health")
        except httpx.RequestError as exc:
            print(f"\nHealth check failed: {exc}")
            return
        if resp.status_code == 200:
            health = resp.json()
            print(f"\nServer health:")
            print(f"  Restricted areas: {health['restricted_areas']}")
            print(f"  Audit pending writes: {health['audit_pending_writes']}")
            print(f"  Audit sink failures: {health['audit_sink_failures']}")


def main():
    parser = argparse.ArgumentParser(description="Passage safety request simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--scenario", choices=["all", *SCENARIOS], default="all",
                        help="Passage to simulate (default: all, in turn)")
    parser.add_argument("--clients", type=int, default=1, help="Concurrent clients")
    parser.add_argument("--requests", type=int, default=4, help="Requests per client")
    parser.add_argument("--draft", type=float, default=6.0, help="Vessel draft in feet")
    parser.add_argument("--crew", choices=["novice", "intermediate", "advanced", "professional"],
                        help="Crew experience level")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print every verdict")

    args = parser.parse_args()
    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
