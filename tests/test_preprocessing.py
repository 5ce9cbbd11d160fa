from __future__ import annotations

import numpy as np
import pytest

from spectral_engine import preprocessing
from spectral_engine.config import PreprocessKind
from spectral_engine.exceptions import ValidationError


ALL_KINDS = ["none", "center", "scale", "center+scale", "decorrelate", "whiten"]


@pytest.fixture
def data(rng):
    mixing = np.array([[2.0, 0.3, 0.0, 0.1],
                       [0.0, 1.0, 0.5, 0.0],
                       [0.0, 0.0, 0.7, 0.2],
                       [0.1, 0.0, 0.0, 1.5]])
    return rng.normal(size=(50, 4)) @ mixing + 3.0


@pytest.mark.parametrize("kind", ALL_KINDS)
def test_replay_reproduces_fit_exactly(data, kind):
    pX, info = preprocessing.fit(data, kind)
    assert np.array_equal(preprocessing.replay(info, data), pX)


def test_center_removes_column_means(data):
    pX, info = preprocessing.fit(data, "center")
    np.testing.assert_allclose(pX.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(info.mean, data.mean(axis=0))
    assert info.multiplier is None


def test_scale_divides_by_standard_deviation_without_centering(data):
    pX, info = preprocessing.fit(data, "scale")
    np.testing.assert_allclose(pX.std(axis=0, ddof=1), 1.0)
    np.testing.assert_allclose(info.mean, 0.0)
    np.testing.assert_allclose(pX, data / data.std(axis=0, ddof=1))


def test_center_scale_alias_cscale(data):
    pX, info = preprocessing.fit(data, "cscale")
    assert info.kind is PreprocessKind.CENTER_SCALE
    np.testing.assert_allclose(pX.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(pX.std(axis=0, ddof=1), 1.0)


def test_decorrelate_gives_diagonal_covariance(data):
    pX, info = preprocessing.fit(data, "decorrelate")
    C = np.cov(pX, rowvar=False)
    off = C - np.diag(np.diag(C))
    np.testing.assert_allclose(off, 0.0, atol=1e-10)
    # eigenvalues stored in descending order and matching the new variances
    assert np.all(np.diff(info.eigenvalues) <= 0)
    np.testing.assert_allclose(np.diag(C), info.eigenvalues, rtol=1e-10)


def test_whiten_gives_identity_covariance(data):
    pX, _ = preprocessing.fit(data, "whiten")
    np.testing.assert_allclose(np.cov(pX, rowvar=False), np.eye(4), atol=1e-10)


def test_whiten_rejects_singular_covariance(data):
    X = data.copy()
    X[:, 3] = X[:, 0] + X[:, 1]
    with pytest.raises(ValidationError) as excinfo:
        preprocessing.fit(X, "whiten")
    assert excinfo.value.stage == "preprocessing"


def test_scale_rejects_constant_column(data):
    X = data.copy()
    X[:, 2] = 7.0
    with pytest.raises(ValidationError):
        preprocessing.fit(X, "scale")


def test_replay_on_new_data_uses_stored_parameters(data, rng):
    _, info = preprocessing.fit(data, "center+scale")
    X_new = rng.normal(size=(5, 4))
    expected = (X_new - data.mean(axis=0)) / data.std(axis=0, ddof=1)
    np.testing.assert_allclose(preprocessing.replay(info, X_new), expected)


def test_replay_rejects_wrong_width(data):
    _, info = preprocessing.fit(data, "center")
    with pytest.raises(ValidationError):
        preprocessing.replay(info, np.zeros((3, 5)))


def test_transform_info_is_immutable(data):
    _, info = preprocessing.fit(data, "center")
    with pytest.raises(ValueError):
        info.mean[0] = 1.0


def test_pca_prefilter_drops_null_directions(plane_data):
    pX, _ = preprocessing.fit(plane_data, "center")
    first = preprocessing.pca_prefilter(pX, ndim=1)
    assert first.shape == (3, 2)
    np.testing.assert_allclose(first.T @ first, np.eye(2), atol=1e-12)


def test_pca_prefilter_falls_back_to_identity(plane_data, caplog):
    pX, _ = preprocessing.fit(plane_data, "center")
    with caplog.at_level("WARNING"):
        first = preprocessing.pca_prefilter(pX, ndim=2)
    assert np.array_equal(first, np.eye(3))
    assert "intrinsic dimension" in caplog.text
