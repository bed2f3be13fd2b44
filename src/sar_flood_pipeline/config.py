"""YAML config loading with dataclass defaults."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from sar_flood_pipeline.errors import ConfigError

# Sampling finer than this exhausts memory on country-sized units.
MIN_ZONAL_SAMPLING_SCALE = 50.0


@dataclass
class FloodConfig:
    difference_threshold: float = 1.25
    permanent_water_months: int = 5
    slope_threshold_degrees: float = 5.0
    connectivity_radius: int = 25
    min_connected_pixels: int = 8
    zonal_sampling_scale: float = 150.0
    input_units: str = "db"  # 'db' or 'natural'
    compare_in_db: bool = False
    eight_connected: bool = True
    best_effort: bool = True
    max_pixels: int = 10_000_000
    tile_size: Optional[int] = None
    clamp_weight: bool = True

    def validate(self) -> "FloodConfig":
        """Raise :class:`ConfigError` for out-of-range values; return self."""
        if self.difference_threshold <= 0:
            raise ConfigError(f"difference_threshold must be > 0, got {self.difference_threshold}")
        if not 0 <= self.permanent_water_months <= 12:
            raise ConfigError(
                f"permanent_water_months must be within 0..12, got {self.permanent_water_months}"
            )
        if self.slope_threshold_degrees < 0:
            raise ConfigError(
                f"slope_threshold_degrees must be >= 0, got {self.slope_threshold_degrees}"
            )
        if self.connectivity_radius < 1:
            raise ConfigError(f"connectivity_radius must be >= 1, got {self.connectivity_radius}")
        if self.min_connected_pixels < 0:
            raise ConfigError(f"min_connected_pixels must be >= 0, got {self.min_connected_pixels}")
        if self.zonal_sampling_scale < MIN_ZONAL_SAMPLING_SCALE:
            raise ConfigError(
                f"zonal_sampling_scale must be >= {MIN_ZONAL_SAMPLING_SCALE}, "
                f"got {self.zonal_sampling_scale}"
            )
        if self.input_units not in ("db", "natural"):
            raise ConfigError(f"input_units must be 'db' or 'natural', got {self.input_units!r}")
        if self.max_pixels < 1:
            raise ConfigError(f"max_pixels must be >= 1, got {self.max_pixels}")
        if self.tile_size is not None and self.tile_size < 1:
            raise ConfigError(f"tile_size must be >= 1, got {self.tile_size}")
        return self


@dataclass
class ExecutionConfig:
    max_workers: int = 1


@dataclass
class PipelineConfig:
    flood: FloodConfig = field(default_factory=FloodConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)


def load_config(path: Optional[str] = None) -> PipelineConfig:
    """Load config from YAML, falling back to defaults for missing keys."""
    if path is None:
        # Try default location
        default = Path("config.yaml")
        if not default.exists():
            logger.warning("No config file found; using built-in defaults")
            return PipelineConfig()
        path = str(default)

    logger.info(f"Using config: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    cfg = PipelineConfig()

    fl = raw.get("flood", {})
    for f_ in fields(FloodConfig):
        if fl.get(f_.name) is not None:
            setattr(cfg.flood, f_.name, fl[f_.name])
    unknown = set(fl) - {f_.name for f_ in fields(FloodConfig)}
    if unknown:
        logger.warning(f"Ignoring unknown flood config keys: {sorted(unknown)}")

    ex = raw.get("execution", {})
    if ex.get("max_workers") is not None:
        cfg.execution.max_workers = int(ex["max_workers"])

    cfg.flood.validate()
    return cfg
