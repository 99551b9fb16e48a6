"""
Pytest configuration for escapetime tests.
"""

import numpy as np
import pytest


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def plane_grid():
    """A coarse sample of the plane around the Mandelbrot set."""
    real, imaginary = np.meshgrid(
        np.linspace(-2.25, 0.75, 31),
        np.linspace(-1.5, 1.5, 25),
    )
    return real, imaginary


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests by default unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)
