"""Passage safety service: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, queue, storage, and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, Request

from passage_safety.api.monitoring import router as monitoring_router
from passage_safety.api.safety import router as safety_router
from passage_safety.config import AppConfig, load_config
from passage_safety.core.analyzer import RouteSafetyAnalyzer
from passage_safety.core.areas import RestrictedAreaRegistry
from passage_safety.core.audit import SafetyAuditLog
from passage_safety.core.depth import DepthSafetyEngine
from passage_safety.core.overrides import OverrideAuthority
from passage_safety.core.weather import WeatherPatternDetector
from passage_safety.queue.asyncio_queue import AsyncioAuditQueue
from passage_safety.storage.file_storage import FileAreaStore, FileAuditSink

log = structlog.get_logger()


@dataclass
class SafetyServices:
    """Everything a request handler needs, built once per process."""
    config: AppConfig
    areas: RestrictedAreaRegistry
    depth: DepthSafetyEngine
    weather: WeatherPatternDetector
    overrides: OverrideAuthority
    audit: SafetyAuditLog
    analyzer: RouteSafetyAnalyzer
    started_at: datetime


def get_services(request: Request) -> SafetyServices:
    services = getattr(request.app.state, "services", None)
    assert services is not None, "Service not initialized"
    return services


def build_services(config: AppConfig) -> SafetyServices:
    """Create components from config. Does not start background tasks."""
    sink = FileAuditSink(config.audit.sink_dir) if config.audit.sink_dir else None
    queue = AsyncioAuditQueue(max_size=config.audit.queue_max_size) if sink else None
    audit = SafetyAuditLog(sink, queue, buffer_size=config.audit.buffer_size)

    store = FileAreaStore(config.areas.store_path) if config.areas.store_path else None
    areas = RestrictedAreaRegistry(
        store,
        refresh_interval_seconds=config.areas.refresh_interval_seconds,
        segment_samples=config.areas.segment_samples,
    )
    depth = DepthSafetyEngine(
        minimum_clearance_percent=config.depth.minimum_clearance_percent,
        minimum_absolute_clearance=config.depth.minimum_absolute_clearance,
        chart_datum_adjustment=config.depth.chart_datum_adjustment,
    )
    weather = WeatherPatternDetector(**asdict(config.weather))
    overrides = OverrideAuthority(audit)

    return SafetyServices(
        config=config,
        areas=areas,
        depth=depth,
        weather=weather,
        overrides=overrides,
        audit=audit,
        analyzer=RouteSafetyAnalyzer(areas, depth, weather, overrides, audit),
        started_at=datetime.now(timezone.utc),
    )


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=not config.logging.file))

    logger_factory = None
    if config.logging.file:
        logger_factory = structlog.WriteLoggerFactory(file=Path(config.logging.file).open("a"))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    config = load_config()
    _setup_logging(config)

    log.info("server_starting",
             env=config.server.env,
             area_store=config.areas.store_path or None,
             audit_sink_dir=config.audit.sink_dir or None,
             audit_buffer_size=config.audit.buffer_size)

    services = build_services(config)
    app.state.services = services

    # Load published areas before the first request; failures keep the defaults.
    result = await services.areas.ensure_fresh_data()
    if result is not None and not result.ok:
        log.warning("restricted_areas_using_defaults", error=result.error)

    # Start background audit writer
    writer_task = None
    if config.audit.sink_dir:
        writer_task = asyncio.create_task(services.audit.run_sink_writer())

    log.info("server_started",
             host=config.server.host,
             port=config.server.port)

    yield

    # Shutdown
    await services.audit.flush_pending_writes()
    if writer_task is not None:
        writer_task.cancel()
        try:
            await writer_task
        except asyncio.CancelledError:
            pass
    app.state.services = None
    log.info("server_stopped")


app = FastAPI(
    title="Passage Safety",
    description="Maritime passage safety checks with audit trail",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(safety_router)
app.include_router(monitoring_router)


def main() -> None:
    config = load_config()
    uvicorn.run("passage_safety.main:app", host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
