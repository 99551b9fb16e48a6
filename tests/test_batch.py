import numpy as np
import pytest
import tensorflow as tf

from escapetime import EscapeParameters, escape_orbit, evaluate, evaluate_points, select_device, smoothed_count
from escapetime.batch import _smooth


def test_batch_matches_scalar_kernel(plane_grid):
    real, imaginary = plane_grid
    params = EscapeParameters(escape_radius_squared=4.0, max_iterations=64)

    result = evaluate_points(real, imaginary, params)

    expected_smooth = np.array([evaluate(4.0, 64, cr, ci) for cr, ci in zip(real.ravel(), imaginary.ravel())])
    expected_iterations = np.array([escape_orbit(4.0, 64, cr, ci).iterations for cr, ci in zip(real.ravel(), imaginary.ravel())])

    assert result.smooth.shape == real.shape
    assert result.iterations.shape == real.shape
    np.testing.assert_array_equal(result.iterations.ravel(), expected_iterations)
    np.testing.assert_allclose(result.smooth.ravel(), expected_smooth, rtol=1e-12, atol=1e-12)
    assert np.all(np.isfinite(result.smooth))


def test_batch_origin_and_divergent_points():
    params = EscapeParameters(max_iterations=50)

    result = evaluate_points([0.0, 2.0, 1.0], [0.0, 2.0, 1.0], params)

    assert result.smooth[0] == 50.0
    assert result.iterations.tolist() == [50, 0, 1]
    assert result.escaped.tolist() == [False, True, True]
    assert result.smooth[1] == pytest.approx(evaluate(4.0, 50, 2.0, 2.0), rel=1e-12)
    assert result.modulus_squared[2] == pytest.approx(10.0)


def test_batch_unit_modulus_is_not_smoothed():
    result = evaluate_points([-1.0, -1.0], [0.0, 0.0], EscapeParameters(max_iterations=2))

    assert result.modulus_squared.tolist() == [1.0, 1.0]
    assert result.smooth.tolist() == [2.0, 2.0]


def test_batch_zero_iterations():
    real = np.array([0.3, 1.0, 2.0])
    imaginary = np.array([0.4, 1.0, 2.0])

    result = evaluate_points(real, imaginary, EscapeParameters(max_iterations=0))

    assert result.iterations.tolist() == [0, 0, 0]
    np.testing.assert_allclose(
        result.smooth,
        [evaluate(4.0, 0, cr, ci) for cr, ci in zip(real, imaginary)],
        rtol=1e-12,
    )


def test_batch_accepts_scalars():
    result = evaluate_points(0.25, 0.0, EscapeParameters(max_iterations=10))

    assert result.smooth.shape == ()
    assert float(result.smooth) == 10.0


def test_batch_accepts_empty_input():
    result = evaluate_points([], [], EscapeParameters(max_iterations=10))

    assert result.smooth.shape == (0,)


def test_batch_rejects_mismatched_shapes():
    with pytest.raises(ValueError, match="shapes differ"):
        evaluate_points([0.0, 1.0], [0.0], EscapeParameters())


@pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
def test_batch_rejects_non_finite_coordinates(bad):
    with pytest.raises(ValueError, match="finite"):
        evaluate_points([0.0, bad], [0.0, 0.0], EscapeParameters())


def test_batch_runs_on_selected_device():
    device = select_device()
    assert device in {"/CPU:0", "/GPU:0"}

    result = evaluate_points([0.0], [0.0], EscapeParameters(max_iterations=5), device=device)

    assert result.smooth.tolist() == [5.0]


@pytest.mark.slow
def test_batch_matches_scalar_kernel_at_high_iteration_cap():
    real, imaginary = np.meshgrid(np.linspace(-0.76, -0.72, 40), np.linspace(0.10, 0.14, 40))
    params = EscapeParameters(max_iterations=2000)

    result = evaluate_points(real, imaginary, params)

    expected = np.array([evaluate(4.0, 2000, cr, ci) for cr, ci in zip(real.ravel(), imaginary.ravel())])
    np.testing.assert_allclose(result.smooth.ravel(), expected, rtol=1e-9, atol=1e-9)


def test_batch_smoothing_matches_scalar_just_above_unit_modulus():
    real = 1.0 + 1e-13
    mod_z = real * real

    smooth = _smooth(
        tf.constant([7], dtype=tf.int64),
        tf.constant([real], dtype=tf.float64),
        tf.constant([0.0], dtype=tf.float64),
        tf.constant([mod_z], dtype=tf.float64),
    )

    assert float(smooth[0]) == pytest.approx(smoothed_count(7, mod_z), rel=1e-12)


def test_batch_overflowing_modulus_stays_finite():
    params = EscapeParameters(escape_radius_squared=1e308, max_iterations=2000)
    real = np.array([1e200, 1.0, -1e250])
    imaginary = np.array([0.0, 1.0, 1e250])

    result = evaluate_points(real, imaginary, params)

    assert np.all(np.isfinite(result.smooth))
    np.testing.assert_allclose(
        result.smooth,
        [evaluate(1e308, 2000, cr, ci) for cr, ci in zip(real, imaginary)],
        rtol=1e-12,
    )


def test_batch_iteration_cap_beyond_int32():
    params = EscapeParameters(max_iterations=2 ** 31 + 5)

    result = evaluate_points([2.0, 1.0], [2.0, 1.0], params)

    assert result.iterations.dtype == np.int64
    assert result.iterations.tolist() == [0, 1]
