"""
normalization.py
----------------
Orthonormalization and sign canonicalization of projection bases.
"""

import logging

import numpy as np
from scipy import linalg

from spectral_engine.exceptions import ComputationError
from spectral_engine.utils import check_finite, first_argmax_abs

logger = logging.getLogger(__name__)


def canonical_signs(P: np.ndarray) -> np.ndarray:
    """Flip columns so the largest-magnitude entry of each is positive (first one on ties)."""
    idx = first_argmax_abs(P, axis=0)
    signs = np.sign(P[idx, np.arange(P.shape[1])])
    signs[signs == 0] = 1.0
    return P * signs


def normalize(V: np.ndarray, tol: float = 1e-10) -> np.ndarray:
    """
    Orthonormal, sign-canonical basis spanning the columns of V.

    Column order is preserved: the k-th output column spans the same flag as
    the first k input columns (economic QR).
    """
    V = np.asarray(V, dtype=np.float64)
    if V.ndim == 1:
        V = V[:, np.newaxis]
    check_finite(V, "raw eigenvectors", stage="normalization")
    Q, R = linalg.qr(V, mode="economic")
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag.min() <= tol * diag.max():
        raise ComputationError("basis vectors are linearly dependent; cannot orthonormalize.",
                               stage="normalization")
    return canonical_signs(Q)
