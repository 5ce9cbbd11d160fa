"""
eigensolver.py
--------------
Generalized symmetric eigensolver with rank reduction.

Solves LHS v = lambda RHS v and returns the ndim eigenpairs at the requested
end of the spectrum. RHS is a degree-weighted Gram matrix and is routinely
singular (fewer informative directions than columns, isolated vertices, data
lying on a lower-dimensional plane). Every call therefore goes through the
same reduction:

    RHS = U diag(s) U^T
    keep the columns of U with s > rank_tol * max(s)
    T = U_r diag(s_r)^(-1/2)
    solve the standard problem (T^T LHS T) w = lambda w
    v = T w

Directions discarded here carry no RHS mass, so the ratio they would
produce is undefined rather than optimal. If fewer than ndim directions
survive, the call fails.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import linalg

from spectral_engine.config import Extremum, _parse_enum
from spectral_engine.exceptions import ComputationError, ValidationError
from spectral_engine.utils import check_finite, relative_tolerance, symmetrize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EigenSolution:
    values: np.ndarray
    vectors: np.ndarray
    rank: int


def _select(evals: np.ndarray, evecs: np.ndarray, ndim: int, extremum: Extremum):
    if extremum is Extremum.SMALLEST:
        order = np.argsort(evals, kind="stable")
    else:
        order = np.argsort(-evals, kind="stable")
    order = order[:ndim]
    return evals[order], evecs[:, order]


def _eigh(A: np.ndarray, what: str):
    try:
        return linalg.eigh(A)
    except (linalg.LinAlgError, ValueError) as e:
        raise ComputationError(f"{what} eigendecomposition did not converge: {e}", stage="eigensolve")


def reduce_rhs(rhs: np.ndarray, rank_tol: float = 1e-9) -> np.ndarray:
    """
    Whitening map T onto the numerically nonsingular part of RHS, so that
    T^T RHS T is the identity.

    Raises ComputationError if RHS is indefinite beyond tolerance or has
    no usable direction.
    """
    s, U = _eigh(symmetrize(rhs), "RHS")
    tol = relative_tolerance(s, rank_tol)
    if s.size == 0 or tol == 0.0:
        raise ComputationError("RHS operand is identically zero.", stage="eigensolve")
    if s.min() < -tol:
        raise ComputationError(
            f"RHS operand is indefinite (smallest eigenvalue {s.min():.3e}).", stage="eigensolve")
    keep = s > tol
    rank = int(keep.sum())
    if rank < rhs.shape[0]:
        logger.info(f"RHS is rank deficient ({rank} of {rhs.shape[0]}); solving in its range.")
    return U[:, keep] / np.sqrt(s[keep])


def solve(lhs: np.ndarray, rhs: Optional[np.ndarray], ndim: int,
          extremum="smallest", rank_tol: float = 1e-9) -> EigenSolution:
    """
    Ordered eigenpairs of LHS v = lambda RHS v.

    Parameters
    ----------
    lhs : np.ndarray
        (p, p) operand. Only its symmetric part is used.
    rhs : np.ndarray or None
        (p, p) positive semi-definite operand; None for a standard problem.
    ndim : int
        Number of eigenpairs to return.
    extremum : str or Extremum
        'smallest' gives non-decreasing eigenvalues, 'largest' non-increasing.
    rank_tol : float
        Relative threshold below which RHS eigenvalues are treated as zero.

    Returns
    -------
    EigenSolution
        values (ndim,), vectors (p, ndim) and the rank of the solved subspace.
    """
    extremum = _parse_enum(Extremum, extremum, "extremum")
    p = lhs.shape[0]
    if lhs.shape != (p, p) or (rhs is not None and rhs.shape != (p, p)):
        raise ValidationError("eigenproblem operands must be square and of equal size.", stage="eigensolve")
    if not 1 <= ndim <= p:
        raise ValidationError(f"ndim must lie in [1, {p}], got {ndim}.", stage="eigensolve")
    check_finite(lhs, "LHS operand", stage="eigensolve")
    A = symmetrize(lhs)

    if rhs is None:
        evals, evecs = _eigh(A, "cost matrix")
        values, vectors = _select(evals, evecs, ndim, extremum)
        return EigenSolution(values=values, vectors=vectors, rank=p)

    check_finite(rhs, "RHS operand", stage="eigensolve")
    T = reduce_rhs(rhs, rank_tol)
    rank = T.shape[1]
    if ndim > rank:
        raise ComputationError(
            f"ndim={ndim} exceeds the achievable rank {rank} of the RHS operand.", stage="eigensolve")
    M = symmetrize(T.T @ A @ T)
    evals, W = _eigh(M, "reduced")
    values, W = _select(evals, W, ndim, extremum)
    vectors = T @ W
    check_finite(vectors, "eigenvectors", stage="eigensolve")
    logger.debug(f"Eigensolve: p={p}, rank={rank}, {extremum.value} values={values}")
    return EigenSolution(values=values, vectors=vectors, rank=rank)
