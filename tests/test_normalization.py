from __future__ import annotations

import numpy as np
import pytest

from spectral_engine.exceptions import ComputationError
from spectral_engine.normalization import canonical_signs, normalize


def test_output_columns_are_orthonormal(rng):
    V = rng.normal(size=(6, 3))
    P = normalize(V)
    np.testing.assert_allclose(P.T @ P, np.eye(3), atol=1e-12)


def test_largest_magnitude_entry_is_positive(rng):
    P = normalize(rng.normal(size=(6, 3)))
    for k in range(3):
        col = P[:, k]
        assert col[np.argmax(np.abs(col))] > 0


def test_repeated_calls_are_bit_identical(rng):
    V = rng.normal(size=(8, 2))
    assert np.array_equal(normalize(V), normalize(V.copy()))


def test_column_sign_flips_do_not_change_result(rng):
    V = rng.normal(size=(5, 2))
    flipped = V * np.array([-1.0, 1.0])
    np.testing.assert_allclose(normalize(flipped), normalize(V), atol=1e-12)


def test_span_and_order_are_preserved(rng):
    V = rng.normal(size=(5, 2))
    P = normalize(V)
    # first output column is parallel to the first input column
    cos = abs(P[:, 0] @ V[:, 0]) / np.linalg.norm(V[:, 0])
    assert cos == pytest.approx(1.0)


def test_canonical_signs_breaks_ties_by_first_index():
    P = np.array([[-0.5], [0.5]])
    assert np.array_equal(canonical_signs(P), np.array([[0.5], [-0.5]]))


def test_dependent_columns_fail():
    V = np.array([[1.0, 2.0], [1.0, 2.0], [0.0, 0.0]])
    with pytest.raises(ComputationError):
        normalize(V)


def test_vector_input_becomes_single_column(rng):
    P = normalize(rng.normal(size=4))
    assert P.shape == (4, 1)
    assert np.linalg.norm(P) == pytest.approx(1.0)
