"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: SAFETY_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class DepthConfig:
    minimum_clearance_percent: float = 20.0
    minimum_absolute_clearance: float = 2.0  # feet
    chart_datum_adjustment: float = 0.0  # feet


@dataclass
class WeatherConfig:
    gale_wind_speed: float = 34
    storm_wind_speed: float = 48
    hurricane_wind_speed: float = 64
    small_craft_wind_speed: float = 20
    small_craft_wave_height: float = 6
    dangerous_wave_height: float = 12
    low_visibility: float = 1
    rapid_pressure_drop: float = 6


@dataclass
class AreasConfig:
    refresh_interval_seconds: float = 300.0
    segment_samples: int = 20
    store_path: str = ""  # YAML area file; empty means built-in areas only


@dataclass
class AuditConfig:
    buffer_size: int = 1000
    sink_dir: str = ""  # JSON Lines directory; empty means memory only
    queue_max_size: int = 10_000


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    depth: DepthConfig = field(default_factory=DepthConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    areas: AreasConfig = field(default_factory=AreasConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "SAFETY_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "SAFETY_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "SAFETY_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "SAFETY_DEPTH_MIN_CLEARANCE_PERCENT":
            lambda v: setattr(config.depth, "minimum_clearance_percent", float(v)),
        "SAFETY_DEPTH_MIN_ABSOLUTE_CLEARANCE":
            lambda v: setattr(config.depth, "minimum_absolute_clearance", float(v)),
        "SAFETY_DEPTH_CHART_DATUM_ADJUSTMENT":
            lambda v: setattr(config.depth, "chart_datum_adjustment", float(v)),
        "SAFETY_AREAS_REFRESH_INTERVAL":
            lambda v: setattr(config.areas, "refresh_interval_seconds", float(v)),
        "SAFETY_AREAS_SEGMENT_SAMPLES": lambda v: setattr(config.areas, "segment_samples", int(v)),
        "SAFETY_AREAS_STORE_PATH": lambda v: setattr(config.areas, "store_path", v),
        "SAFETY_AUDIT_BUFFER_SIZE": lambda v: setattr(config.audit, "buffer_size", int(v)),
        "SAFETY_AUDIT_SINK_DIR": lambda v: setattr(config.audit, "sink_dir", v),
        "SAFETY_AUDIT_QUEUE_MAX_SIZE": lambda v: setattr(config.audit, "queue_max_size", int(v)),
        "SAFETY_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "SAFETY_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "SAFETY_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    # Weather thresholds share one naming rule.
    for f in fields(WeatherConfig):
        mapping[f"SAFETY_WEATHER_{f.name.upper()}"] = (
            lambda v, name=f.name: setattr(config.weather, name, float(v))
        )

    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("SAFETY_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in ("server", "depth", "weather", "areas", "audit", "logging"):
            target = getattr(config, section)
            for k, v in (raw.get(section) or {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
