"""Health check and monitoring endpoints."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/v1")

VERSION = "0.1.0"


@router.get("/health")
async def health(request: Request) -> dict:
    """Basic health check."""
    from passage_safety.main import get_services

    services = get_services(request)
    last_refresh = services.areas.last_refresh
    now = datetime.now(timezone.utc)

    return {
        "status": "ok",
        "version": VERSION,
        "uptime_seconds": round((now - services.started_at).total_seconds(), 1),
        "restricted_areas": len(services.areas.get_active_areas()),
        "areas_last_refresh": last_refresh.isoformat() if last_refresh else None,
        "overrides": services.overrides.get_override_statistics(),
        "audit_pending_writes": services.audit.pending_writes(),
        "audit_sink_failures": services.audit.sink_failures,
    }


@router.get("/config")
async def get_client_config(request: Request) -> dict:
    """Safety thresholds in effect, for clients that display them."""
    from passage_safety.main import get_services

    config = get_services(request).config
    return {
        "version": VERSION,
        "depth": asdict(config.depth),
        "weather": asdict(config.weather),
        "areas": {
            "refresh_interval_seconds": config.areas.refresh_interval_seconds,
            "segment_samples": config.areas.segment_samples,
        },
    }
