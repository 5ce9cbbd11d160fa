"""
kernels.py
-----------------------------
Weight and scatter matrix construction.

This module turns a neighborhood graph (plus squared distances and, for
supervised strategies, class labels) into a non-negative weight matrix W,
and W into the operand pair of the generalized eigenproblem:

    D = diag(rowsums W),   L = D - W
    LHS = X^T L X,         RHS = X^T D X

Strategies are looked up in a table keyed by WeightKind.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from spectral_engine.config import WeightKind, WeightStrategy
from spectral_engine.exceptions import ComputationError, ValidationError
from spectral_engine.graph_methods import NeighborhoodGraph
from spectral_engine.parallel_utils import parallel_column_map
from spectral_engine.utils import check_finite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScatterPair:
    """Operands of LHS v = lambda RHS v. rhs=None means a standard eigenproblem."""
    lhs: np.ndarray
    rhs: Optional[np.ndarray] = None


############################################
# Weight strategies
############################################

def heat_kernel_weights(graph: NeighborhoodGraph, sqdist: np.ndarray, t: float) -> np.ndarray:
    """
    Heat kernel exp(-dist^2 / t) restricted to the graph.

    Parameters
    ----------
    graph : NeighborhoodGraph
        Adjacency mask.
    sqdist : np.ndarray
        (n, n) squared distances.
    t : float
        Bandwidth in (0, inf).

    Returns
    -------
    np.ndarray
        Weight matrix, zero off the mask and on the diagonal.
    """
    W = np.exp(-sqdist / t) * graph.mask
    np.fill_diagonal(W, 0.0)
    return W


def binary_weights(graph: NeighborhoodGraph, sqdist: np.ndarray = None) -> np.ndarray:
    return graph.mask.astype(np.float64)


def class_block_weights(labels: np.ndarray) -> np.ndarray:
    """
    Complete graph inside each class: weight 1 for every within-class pair,
    regardless of distances.
    """
    labels = np.asarray(labels)
    W = (labels[:, None] == labels[None, :]).astype(np.float64)
    np.fill_diagonal(W, 0.0)
    return W


def discriminant_split_weights(graph: NeighborhoodGraph, sqdist: np.ndarray,
                               labels: np.ndarray, beta: float) -> np.ndarray:
    """
    Affinity a = exp(-dist^2 / beta) on mutual neighbors; same-class pairs
    keep a, between-class pairs get a * (1 - a).
    """
    labels = np.asarray(labels)
    mutual = graph.mask & graph.mask.T
    a = np.exp(-sqdist / beta)
    same = labels[:, None] == labels[None, :]
    W = np.where(mutual, np.where(same, a, a * (1.0 - a)), 0.0)
    np.fill_diagonal(W, 0.0)
    return W


WeightBuilder = Callable[[Optional[NeighborhoodGraph], Optional[np.ndarray], Optional[np.ndarray]], np.ndarray]


def kernel_dispatcher(strategy: WeightStrategy) -> WeightBuilder:
    """
    Return a builder f(graph, sqdist, labels) -> W for the given strategy.
    """
    table: Dict[WeightKind, WeightBuilder] = {
        WeightKind.HEAT: lambda g, d2, y: heat_kernel_weights(g, d2, strategy.t),
        WeightKind.BINARY: lambda g, d2, y: binary_weights(g, d2),
        WeightKind.CLASS_BLOCK: lambda g, d2, y: class_block_weights(y),
        WeightKind.DISCRIMINANT_SPLIT: lambda g, d2, y: discriminant_split_weights(g, d2, y, strategy.beta),
    }
    if strategy.kind not in table:
        raise ValidationError(f"Unknown weight strategy '{strategy.kind}'.", stage="weights")
    return table[strategy.kind]


def build_weights(strategy: WeightStrategy, graph: Optional[NeighborhoodGraph] = None,
                  sqdist: Optional[np.ndarray] = None, labels: Optional[np.ndarray] = None) -> np.ndarray:
    if strategy.requires_graph and (graph is None or sqdist is None):
        raise ValidationError(f"'{strategy.kind.value}' needs a graph and squared distances.", stage="weights")
    if strategy.requires_labels and labels is None:
        raise ValidationError(f"'{strategy.kind.value}' needs class labels.", stage="weights")
    W = kernel_dispatcher(strategy)(graph, sqdist, labels)
    check_finite(W, "weight matrix", stage="weights")
    if not np.any(W > 0):
        raise ComputationError(
            f"'{strategy.kind.value}' weights are all zero; the bandwidth may be too small "
            "for the neighbor distances.", stage="weights")
    logger.debug(f"Weights '{strategy.kind.value}': {int(np.count_nonzero(W))} nonzero entries.")
    return W


############################################
# Laplacian and scatter matrices
############################################

def laplacian(W: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Degree matrix D = diag(rowsums W) and Laplacian L = D - W."""
    D = np.diag(W.sum(axis=1))
    return D, D - W


def scatter_pair(X: np.ndarray, W: np.ndarray) -> ScatterPair:
    """(X^T L X, X^T D X) for the weight matrix W."""
    D, L = laplacian(W)
    lhs = X.T @ L @ X
    rhs = X.T @ D @ X
    check_finite(lhs, "LHS scatter", stage="weights")
    check_finite(rhs, "RHS scatter", stage="weights")
    return ScatterPair(lhs=lhs, rhs=rhs)


def pairwise_scatter(X: np.ndarray) -> np.ndarray:
    """
    Sum over all ordered pairs of (x_i - x_j)(x_i - x_j)^T, in closed form.
    """
    n = X.shape[0]
    s = X.sum(axis=0)
    return 2.0 * n * (X.T @ X) - 2.0 * np.outer(s, s)


def discriminant_cost(X: np.ndarray, W: np.ndarray, alpha: float) -> ScatterPair:
    """
    Single cost matrix (1 - alpha) * St - alpha * Sl, with local scatter
    Sl = X^T L X / (2 n^2) and total scatter St = pairwise_scatter / (2 n^2).
    """
    n = X.shape[0]
    _, L = laplacian(W)
    Sl = (X.T @ L @ X) / (2.0 * n * n)
    St = pairwise_scatter(X) / (2.0 * n * n)
    cost = (1.0 - alpha) * St - alpha * Sl
    check_finite(cost, "discriminant cost", stage="weights")
    return ScatterPair(lhs=cost, rhs=None)


def build_scatter_pair(X: np.ndarray, W: np.ndarray, strategy: WeightStrategy) -> ScatterPair:
    if strategy.kind is WeightKind.DISCRIMINANT_SPLIT:
        return discriminant_cost(X, W, strategy.alpha)
    return scatter_pair(X, W)


############################################
# Laplacian score
############################################

def laplacian_score(X: np.ndarray, W: np.ndarray, n_jobs=None) -> np.ndarray:
    """
    Laplacian score of every column of X under the weight matrix W.

    Each feature f is first shifted by its degree-weighted mean,
    f~ = f - (f^T D 1) / (1^T D 1), and scored as f~^T L f~ / f~^T D f~.
    Constant features have no spread and score NaN.
    """
    D, L = laplacian(W)
    d = np.diag(D).copy()
    total = d.sum()
    if not total > 0:
        raise ComputationError("degree matrix is zero; cannot score features.", stage="weights")

    def _score_block(F):
        Ft = F - (d @ F) / total
        term1 = np.sum(Ft * (L @ Ft), axis=0)
        term2 = np.sum(Ft * (d[:, None] * Ft), axis=0)
        magnitude = np.sum(d[:, None] * F * F, axis=0)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = term1 / term2
        scores[~(term2 > 1e-12 * magnitude)] = np.nan
        return scores

    scores = parallel_column_map(_score_block, X, n_jobs=n_jobs)
    n_const = int(np.sum(np.isnan(scores)))
    if n_const:
        logger.warning(f"{n_const} feature(s) have zero weighted spread and are ranked last.")
    return scores
