"""Vectorized escape-time evaluation over arrays of starting points."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

from .kernel import EscapeParameters

logger = logging.getLogger(__name__)

CPU_DEVICE = "/CPU:0"


@dataclass(frozen=True)
class EscapeResult:
    """Element-wise results of a batch evaluation, shaped like the input coordinates."""

    smooth: np.ndarray
    iterations: np.ndarray
    modulus_squared: np.ndarray
    escaped: np.ndarray


@tf.function
def _escape_step(real: tf.Tensor, imaginary: tf.Tensor, c_real: tf.Tensor, c_imaginary: tf.Tensor,
                 ns: tf.Tensor, active: tf.Tensor, horizon: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Advance every point that is still inside the escape radius by one iteration."""

    new_real = real * real - imaginary * imaginary + c_real
    new_imaginary = 2.0 * real * imaginary + c_imaginary
    real = tf.where(active, new_real, real)
    imaginary = tf.where(active, new_imaginary, imaginary)
    ns = ns + tf.cast(active, ns.dtype)
    mod_z = real * real + imaginary * imaginary
    active = tf.logical_and(active, mod_z < horizon)
    return real, imaginary, ns, active


@tf.function
def _escape_run(c_real: tf.Tensor, c_imaginary: tf.Tensor, horizon: tf.Tensor,
                max_iterations: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Iterate the recurrence with a TensorFlow while loop until all points escape or the cap is hit."""

    i = tf.constant(0, dtype=tf.int64)
    ns = tf.zeros_like(c_real, dtype=tf.int64)
    active = (c_real * c_real + c_imaginary * c_imaginary) < horizon

    def cond(i, real, imaginary, ns, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, real, imaginary, ns, active):
        real, imaginary, ns, active = _escape_step(real, imaginary, c_real, c_imaginary, ns, active, horizon)
        return i + 1, real, imaginary, ns, active

    return tf.while_loop(cond, body, (i, tf.identity(c_real), tf.identity(c_imaginary), ns, active))


def _final_modulus(real: tf.Tensor, imaginary: tf.Tensor, mod_z: tf.Tensor) -> tf.Tensor:
    """``|z|``, rescaled where ``|z|**2`` overflowed and clamped to the largest double."""

    max_modulus = tf.constant(np.finfo(np.float64).max, dtype=mod_z.dtype)
    scale = tf.maximum(tf.abs(real), tf.abs(imaginary))
    scale_safe = tf.where(scale > 0, scale, tf.ones_like(scale))
    scaled = scale * tf.sqrt(tf.square(real / scale_safe) + tf.square(imaginary / scale_safe))
    overflowed = tf.where(tf.math.is_finite(scale), scaled, tf.fill(tf.shape(scale), max_modulus))
    modulus = tf.where(tf.math.is_finite(mod_z), tf.sqrt(mod_z), overflowed)
    return tf.minimum(modulus, max_modulus)


def _smooth(ns: tf.Tensor, real: tf.Tensor, imaginary: tf.Tensor, mod_z: tf.Tensor) -> tf.Tensor:
    modulus = _final_modulus(real, imaginary, mod_z)
    one = tf.constant(1.0, dtype=modulus.dtype)
    inside = modulus <= one
    # only the discarded branch needs a log-safe stand-in
    modulus_safe = tf.where(inside, tf.fill(tf.shape(modulus), tf.constant(2.0, dtype=modulus.dtype)), modulus)
    log2 = tf.math.log(tf.constant(2.0, dtype=modulus.dtype))
    ns_float = tf.cast(ns, modulus.dtype)
    smooth_escape = ns_float - tf.math.log(tf.math.log(modulus_safe)) / log2
    return tf.where(inside, ns_float, smooth_escape)


def _as_coordinates(real, imaginary) -> tuple[np.ndarray, np.ndarray]:
    real = np.asarray(real, dtype=np.float64)
    imaginary = np.asarray(imaginary, dtype=np.float64)
    if real.shape != imaginary.shape:
        raise ValueError(f"Coordinate shapes differ: real {real.shape} vs imaginary {imaginary.shape}.")
    if not (np.all(np.isfinite(real)) and np.all(np.isfinite(imaginary))):
        raise ValueError("Coordinates must be finite.")
    return real, imaginary


def evaluate_points(real, imaginary, params: EscapeParameters, *, device: Optional[str] = None) -> EscapeResult:
    """Evaluate the smoothed escape time of every point ``real + i*imaginary``."""

    real, imaginary = _as_coordinates(real, imaginary)
    device = device if device is not None else CPU_DEVICE
    logger.debug(
        "Evaluating %d points on %s (escape_radius_squared=%s, max_iterations=%d)",
        real.size, device, params.escape_radius_squared, params.max_iterations,
    )

    with tf.device(device):
        c_real = tf.convert_to_tensor(real, dtype=tf.float64)
        c_imaginary = tf.convert_to_tensor(imaginary, dtype=tf.float64)
        horizon = tf.constant(params.escape_radius_squared, dtype=tf.float64)
        max_iterations = tf.constant(params.max_iterations, dtype=tf.int64)

        steps, zr, zi, ns, _ = _escape_run(c_real, c_imaginary, horizon, max_iterations)

        mod_z = zr * zr + zi * zi
        smooth = _smooth(ns, zr, zi, mod_z)
        escaped = tf.greater_equal(mod_z, horizon)

    logger.debug("Batch evaluation finished after %d iterations", int(steps))

    return EscapeResult(
        smooth=smooth.numpy(),
        iterations=ns.numpy(),
        modulus_squared=mod_z.numpy(),
        escaped=escaped.numpy(),
    )


def select_device() -> str:
    """Pick the first visible GPU, falling back to the CPU."""

    gpus = tf.config.list_physical_devices("GPU")
    if not gpus:
        logger.debug("No GPU found, using CPU")
        return CPU_DEVICE
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as exc:
        # memory growth can only be set before the GPUs are initialized
        logger.debug("Could not configure GPU memory growth: %s", exc)
        return CPU_DEVICE
    logger.debug("GPU found, using %s", gpus[0].name)
    return "/GPU:0"
