"""Exception and warning types raised by the flood pipeline."""

from __future__ import annotations


class FloodPipelineError(Exception):
    """Base class for all pipeline errors."""


class DimensionMismatch(FloodPipelineError, ValueError):
    """Grids passed to a joint operation differ in shape or georeferencing."""


class EmptyInput(FloodPipelineError, ValueError):
    """A required raster or raster collection has no extent or no images.

    Usually a misconfigured date window or missing coverage upstream.
    """


class AggregationTooLarge(FloodPipelineError):
    """Zonal aggregation exceeds ``max_pixels`` and best-effort is disabled."""


class ConfigError(FloodPipelineError, ValueError):
    """Configuration value outside its allowed range."""


class DegradedAggregationWarning(UserWarning):
    """Zonal aggregation fell back to a coarser sampling scale."""
