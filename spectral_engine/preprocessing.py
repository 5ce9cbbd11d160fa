"""
preprocessing.py
----------------
Column-wise affine preprocessing with replayable parameters.

A fitted transform is described entirely by a TransformInfo value:

    pX = ((X - mean) / scale) @ multiplier

with multiplier omitted for the kinds that do not rotate the data. The same
value is attached to every embedding so unseen data can be mapped through
exactly the same transform later.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import linalg

from spectral_engine.config import PreprocessKind, _parse_enum
from spectral_engine.exceptions import ValidationError, ComputationError
from spectral_engine.utils import relative_tolerance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformInfo:
    """
    Parameters of a fitted preprocessing transform.

    Attributes
    ----------
    kind : PreprocessKind
        Which transform was fitted.
    mean : np.ndarray
        Column means subtracted before scaling (zeros when not centering).
    scale : np.ndarray
        Column divisors (ones when not scaling).
    multiplier : np.ndarray or None
        (p, p) decorrelation or whitening matrix applied last.
    eigenvalues : np.ndarray or None
        Covariance eigenvalues (descending) for decorrelate/whiten.
    """
    kind: PreprocessKind
    mean: np.ndarray
    scale: np.ndarray
    multiplier: Optional[np.ndarray] = None
    eigenvalues: Optional[np.ndarray] = None

    def __post_init__(self):
        for name in ("mean", "scale", "multiplier", "eigenvalues"):
            value = getattr(self, name)
            if value is not None:
                value = np.array(value, dtype=np.float64)
                value.setflags(write=False)
                object.__setattr__(self, name, value)

    @property
    def n_features(self) -> int:
        return self.mean.shape[0]


def _covariance_eigh(Xc: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Eigenpairs of the sample covariance of centered data, descending."""
    n = Xc.shape[0]
    if n <= 1:
        raise ValidationError("covariance needs at least 2 observations.", stage="preprocessing")
    C = (Xc.T @ Xc) / (n - 1)
    C = 0.5 * (C + C.T)
    try:
        evals, evecs = linalg.eigh(C)
    except linalg.LinAlgError as e:
        raise ComputationError(f"covariance eigendecomposition failed: {e}", stage="preprocessing")
    order = np.argsort(-evals, kind="stable")
    return evals[order], evecs[:, order]


def fit(X: np.ndarray, kind="center") -> Tuple[np.ndarray, TransformInfo]:
    """
    Fit a preprocessing transform on X and return (pX, info).

    Parameters
    ----------
    X : np.ndarray
        Validated (n, p) data matrix.
    kind : str or PreprocessKind
        One of 'none', 'center', 'scale', 'center+scale', 'decorrelate', 'whiten'.

    Returns
    -------
    pX : np.ndarray
        Preprocessed matrix, produced by replay(info, X).
    info : TransformInfo
        Parameters needed to replay the transform on new data.
    """
    kind = _parse_enum(PreprocessKind, kind, "preprocess kind")
    n, p = X.shape
    mean = np.zeros(p)
    scale = np.ones(p)
    multiplier = None
    eigenvalues = None

    if kind in (PreprocessKind.CENTER, PreprocessKind.CENTER_SCALE,
                PreprocessKind.DECORRELATE, PreprocessKind.WHITEN):
        mean = X.mean(axis=0)

    if kind in (PreprocessKind.SCALE, PreprocessKind.CENTER_SCALE):
        scale = X.std(axis=0, ddof=1)
        flat = np.where(~(scale > 0))[0]
        if flat.size > 0:
            raise ValidationError(
                f"cannot scale zero-variance columns {flat.tolist()}.", stage="preprocessing")

    if kind in (PreprocessKind.DECORRELATE, PreprocessKind.WHITEN):
        eigenvalues, evecs = _covariance_eigh(X - mean)
        if kind is PreprocessKind.DECORRELATE:
            multiplier = evecs
        else:
            tol = relative_tolerance(eigenvalues, 1e-12)
            if np.any(eigenvalues <= tol):
                raise ValidationError(
                    "whitening requires a positive definite covariance; "
                    f"smallest eigenvalue is {eigenvalues[-1]:.3e}.", stage="preprocessing")
            multiplier = evecs / np.sqrt(eigenvalues)

    info = TransformInfo(kind=kind, mean=mean, scale=scale,
                         multiplier=multiplier, eigenvalues=eigenvalues)
    pX = replay(info, X)
    logger.debug(f"Preprocessing '{kind.value}' fitted on {n}x{p} matrix.")
    return pX, info


def replay(info: TransformInfo, X_new: np.ndarray) -> np.ndarray:
    """Apply a fitted transform to new data without recomputing anything."""
    X_new = np.asarray(X_new, dtype=np.float64)
    if X_new.ndim == 1:
        X_new = X_new[np.newaxis, :]
    if X_new.ndim != 2 or X_new.shape[1] != info.n_features:
        raise ValidationError(
            f"new data must have {info.n_features} columns, shape={X_new.shape}", stage="preprocessing")
    pX = (X_new - info.mean) / info.scale
    if info.multiplier is not None:
        pX = pX @ info.multiplier
    return pX


def pca_prefilter(pX: np.ndarray, ndim: int, tol: float = 1e-9) -> np.ndarray:
    """
    Projection onto the top principal subspace of pX, used before building
    scatter matrices when p exceeds the achievable rank.

    Keeps every direction whose covariance eigenvalue exceeds tol times the
    largest one. If that leaves no more than ndim directions the identity is
    returned and a warning is logged.
    """
    p = pX.shape[1]
    evals, evecs = _covariance_eigh(pX - pX.mean(axis=0))
    pcadim = int(np.sum(evals > relative_tolerance(evals, tol)))
    if pcadim <= ndim:
        logger.warning(
            f"target ndim={ndim} is not below the intrinsic dimension {pcadim} found by PCA; "
            "skipping the PCA prefilter.")
        return np.eye(p)
    logger.info(f"PCA prefilter keeps {pcadim} of {p} directions.")
    return evecs[:, :pcadim]
