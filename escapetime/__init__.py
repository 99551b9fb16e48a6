"""Public API for smoothed Mandelbrot escape-time evaluation."""

from .kernel import (
    ESCAPE_RADIUS_SQUARED,
    EscapeOrbit,
    EscapeParameters,
    escape_orbit,
    evaluate,
    evaluate_point,
    smoothed_count,
)
from .batch import EscapeResult, evaluate_points, select_device

__all__ = [
    "ESCAPE_RADIUS_SQUARED",
    "EscapeOrbit",
    "EscapeParameters",
    "EscapeResult",
    "escape_orbit",
    "evaluate",
    "evaluate_point",
    "evaluate_points",
    "select_device",
    "smoothed_count",
]
