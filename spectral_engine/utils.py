import numpy as np
from typing import Optional, Tuple
from scipy.sparse.csgraph import connected_components

import logging

from spectral_engine.exceptions import ValidationError, ComputationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def configure_logging(level: int = logging.INFO, name: str = "spectral_engine") -> logging.Logger:
    """
    Attach a stream handler to the package logger. Calling it twice does not
    duplicate handlers.
    """
    log = logging.getLogger(name)
    log.setLevel(level)
    if not any(getattr(h, "_spectral_engine", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._spectral_engine = True
        log.addHandler(handler)
    return log


def validate_data_matrix(X) -> np.ndarray:
    """
    Coerce X to a dense float64 (n, p) array with n >= 2, p >= 1 and no
    missing or infinite entries.
    """
    try:
        X = np.array(X, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Data matrix is not numeric: {e}", stage="validation")
    if X.ndim != 2:
        raise ValidationError(f"X must be 2D, shape={X.shape}", stage="validation")
    n, p = X.shape
    if n < 2 or p < 1:
        raise ValidationError(f"X needs at least 2 rows and 1 column, shape={X.shape}", stage="validation")
    if not np.isfinite(X).all():
        n_bad = int(np.sum(~np.isfinite(X)))
        raise ValidationError(f"X contains {n_bad} missing or infinite entries.", stage="validation")
    return X


def validate_labels(labels, n: int, require_pairs: bool = False) -> np.ndarray:
    """
    Check a length-n label vector. Numeric labels must be finite. With
    require_pairs, every class must hold at least two observations.
    """
    labels = np.asarray(labels)
    if labels.ndim != 1 or labels.shape[0] != n:
        raise ValidationError(f"labels must be a vector of length {n}, shape={labels.shape}", stage="validation")
    if labels.dtype.kind in "fc":
        if not np.isfinite(labels).all():
            raise ValidationError("labels contain NaN or infinite entries.", stage="validation")
    elif labels.dtype.kind == "O":
        for v in labels:
            if v is None or (isinstance(v, float) and not np.isfinite(v)):
                raise ValidationError("labels contain missing or infinite entries.", stage="validation")
    if require_pairs:
        classes, counts = np.unique(labels, return_counts=True)
        singletons = classes[counts == 1]
        if singletons.size > 0:
            raise ValidationError(
                f"no degenerate class of size 1 is allowed; singleton classes: {singletons.tolist()}",
                stage="validation")
    return labels


def check_finite(A: np.ndarray, name: str, stage: str) -> np.ndarray:
    """Raise ComputationError if A picked up NaN or Inf along the way."""
    if not np.isfinite(A).all():
        n_bad = int(np.sum(~np.isfinite(A)))
        raise ComputationError(f"{name} contains {n_bad} non-finite entries.", stage=stage)
    return A


def count_components(mask: np.ndarray, directed: bool = False) -> Tuple[int, np.ndarray]:
    """
    Number of (weakly) connected components of a boolean adjacency mask.
    Disconnected graphs are reported, not bridged.
    """
    if mask.shape[0] != mask.shape[1]:
        raise ValueError(f"Adjacency must be square. shape={mask.shape}")
    n_components, comp_labels = connected_components(
        mask.astype(np.int8), directed=directed, connection="weak", return_labels=True)
    if n_components > 1:
        logger.info(f"Graph has {n_components} disconnected components, not bridging.")
    return n_components, comp_labels


def symmetrize(A: np.ndarray) -> np.ndarray:
    return 0.5 * (A + A.T)


def relative_tolerance(values: np.ndarray, rtol: float) -> float:
    """Absolute threshold rtol * max|values|, zero for an all-zero spectrum."""
    if values.size == 0:
        return 0.0
    return float(rtol * np.max(np.abs(values)))


def stable_order(scores: np.ndarray, descending: bool = True, nan_last: bool = True) -> np.ndarray:
    """
    Indices sorting scores, ties kept in original index order.
    NaN scores go to the end regardless of direction.
    """
    scores = np.asarray(scores, dtype=np.float64)
    key = -scores if descending else scores.copy()
    if nan_last:
        key = np.where(np.isnan(key), np.inf, key)
    return np.argsort(key, kind="stable")


def first_argmax_abs(v: np.ndarray, axis: Optional[int] = 0) -> np.ndarray:
    return np.argmax(np.abs(v), axis=axis)
