import os
import sys

import numpy as np
import pytest

# Ensure the project root is on sys.path so tests can import
# `spectral_engine` without installing the package.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def plane_data(rng):
    """100 points on a 2D plane embedded in 3D."""
    coords = rng.uniform(-1.0, 1.0, size=(100, 2))
    basis = np.array([[1.0, 0.0, 0.5],
                      [0.0, 1.0, -0.3]])
    return coords @ basis + np.array([2.0, -1.0, 0.5])


@pytest.fixture
def two_blobs(rng):
    """Two well separated Gaussian blobs in 3D with labels 1 and 2."""
    n = 40
    a = rng.normal(0.0, 0.5, size=(n, 3))
    b = rng.normal(0.0, 0.5, size=(n, 3)) + np.array([5.0, 5.0, 5.0])
    X = np.vstack([a, b])
    labels = np.array([1] * n + [2] * n)
    return X, labels
