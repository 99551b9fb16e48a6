"""Per-point escape-time evaluation with fractional smoothing."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

ESCAPE_RADIUS_SQUARED = 4.0
LOG2 = np.log(np.float64(2.0))
MAX_MODULUS = np.float64(np.finfo(np.float64).max)


@dataclass(frozen=True)
class EscapeParameters:
    """Iteration bounds shared by every point of an evaluation."""

    escape_radius_squared: float = ESCAPE_RADIUS_SQUARED
    max_iterations: int = 1000

    def __post_init__(self) -> None:
        radius = self.escape_radius_squared
        if isinstance(radius, bool) or not isinstance(radius, (int, float, np.floating, np.integer)):
            raise ValueError("escape_radius_squared must be a real number.")
        if not math.isfinite(radius) or radius <= 0:
            raise ValueError("escape_radius_squared must be finite and greater than zero.")
        iterations = self.max_iterations
        if isinstance(iterations, bool) or not isinstance(iterations, (int, np.integer)):
            raise ValueError("max_iterations must be an integer.")
        if iterations < 0:
            raise ValueError("max_iterations must not be negative.")


@dataclass(frozen=True)
class EscapeOrbit:
    """Raw state the recurrence stopped on, before smoothing."""

    iterations: int
    modulus_squared: float
    real: float = 0.0
    imaginary: float = 0.0

    @property
    def modulus(self) -> float:
        """``|z|``, recovered with ``hypot`` when ``modulus_squared`` overflowed."""
        if math.isfinite(self.modulus_squared):
            return float(np.sqrt(np.float64(self.modulus_squared)))
        return float(np.hypot(np.float64(self.real), np.float64(self.imaginary)))


def escape_orbit(escape_radius_squared: float, max_iterations: int,
                 initial_real: float, initial_imaginary: float) -> EscapeOrbit:
    """Iterate ``z -> z**2 + c`` from ``z = c`` until escape or the iteration cap."""

    c_real = np.float64(initial_real)
    c_imaginary = np.float64(initial_imaginary)
    horizon = np.float64(escape_radius_squared)

    # |z|**2 may overflow to inf on the escaping step; the comparison still holds
    with np.errstate(over="ignore"):
        real = c_real
        imaginary = c_imaginary
        mod_z = real * real + imaginary * imaginary
        iterations = 0

        while mod_z < horizon and iterations < max_iterations:
            new_real = real * real - imaginary * imaginary + c_real
            imaginary = np.float64(2.0) * real * imaginary + c_imaginary
            real = new_real
            mod_z = real * real + imaginary * imaginary
            iterations += 1

    return EscapeOrbit(iterations=iterations, modulus_squared=float(mod_z),
                       real=float(real), imaginary=float(imaginary))


def _smooth_modulus(iterations: int, final_modulus) -> float:
    final_modulus = np.minimum(np.float64(final_modulus), MAX_MODULUS)
    if final_modulus <= 1.0:
        return float(iterations)
    return float(np.float64(iterations) - np.log(np.log(final_modulus)) / LOG2)


def smoothed_count(iterations: int, final_modulus_squared: float) -> float:
    """Turn a discrete escape iteration into a continuous value.

    Orbits that end inside the unit circle keep their raw count, since
    ``log(log(|z|))`` is undefined there. ``|z| == 1`` is treated the same way
    because ``log(log(1))`` diverges. An overflowed ``|z|**2`` is clamped to the
    largest double so the result stays finite.
    """

    return _smooth_modulus(iterations, np.sqrt(np.float64(final_modulus_squared)))


def evaluate(escape_radius_squared: float, max_iterations: int,
             initial_real: float, initial_imaginary: float) -> float:
    """Return the smoothed escape-time value of the point ``initial_real + i*initial_imaginary``."""

    orbit = escape_orbit(escape_radius_squared, max_iterations, initial_real, initial_imaginary)
    return _smooth_modulus(orbit.iterations, orbit.modulus)


def evaluate_point(params: EscapeParameters, initial_real: float, initial_imaginary: float) -> float:
    """Shorthand for :func:`evaluate` with the bounds taken from ``params``."""
    return evaluate(params.escape_radius_squared, params.max_iterations, initial_real, initial_imaginary)
