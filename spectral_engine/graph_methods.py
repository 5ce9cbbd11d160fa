# graph_methods.py

import math
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import networkx as nx

from spectral_engine.config import Neighborhood, NeighborhoodKind, Symmetrization, _parse_enum
from spectral_engine.exceptions import ValidationError
from spectral_engine.parallel_utils import parallel_distance_matrix
from spectral_engine.utils import check_finite, count_components

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NeighborhoodGraph:
    """
    Boolean adjacency over observations. mask[i, j] means j is a neighbor of i.
    The diagonal is always False.
    """
    mask: np.ndarray
    symmetric: Symmetrization

    def __post_init__(self):
        mask = np.array(self.mask, dtype=bool)
        mask.setflags(write=False)
        object.__setattr__(self, "mask", mask)

    @property
    def n_nodes(self) -> int:
        return self.mask.shape[0]

    @property
    def n_edges(self) -> int:
        """Directed edge count; each undirected edge counts twice."""
        return int(self.mask.sum())

    @property
    def is_symmetric(self) -> bool:
        return bool(np.array_equal(self.mask, self.mask.T))


def pairwise_distances(X: np.ndarray, metric: str = "euclidean", n_jobs=None) -> np.ndarray:
    """
    Dense (n, n) distance matrix with an exact zero diagonal.
    """
    try:
        D = parallel_distance_matrix(X, metric=metric, n_jobs=n_jobs)
    except ValueError as e:
        raise ValidationError(f"Unknown or unusable metric '{metric}': {e}", stage="graph")
    np.fill_diagonal(D, 0.0)
    return check_finite(D, "distance matrix", stage="graph")


def _n_neighbors(neighborhood: Neighborhood, n: int) -> int:
    if neighborhood.kind is NeighborhoodKind.KNN:
        k = neighborhood.value
        if k >= n:
            raise ValidationError(f"knn requires k < n; got k={k}, n={n}.", stage="graph")
        return k
    # proportion
    k = math.ceil(round(neighborhood.value * n, 10))
    return max(1, min(k, n - 1))


def directed_mask(D: np.ndarray, neighborhood: Neighborhood) -> np.ndarray:
    """
    Raw neighbor relation before symmetrization.

    For knn and proportion each row keeps its k nearest others; equal
    distances are resolved in favor of the lower index.
    """
    n = D.shape[0]
    if neighborhood.kind is NeighborhoodKind.ENN:
        M = D <= neighborhood.value
        np.fill_diagonal(M, False)
        return M

    k = _n_neighbors(neighborhood, n)
    D_off = D.copy()
    np.fill_diagonal(D_off, np.inf)
    order = np.argsort(D_off, axis=1, kind="stable")[:, :k]
    M = np.zeros((n, n), dtype=bool)
    M[np.arange(n)[:, None], order] = True
    np.fill_diagonal(M, False)
    return M


def symmetrize_mask(M: np.ndarray, policy) -> np.ndarray:
    policy = _parse_enum(Symmetrization, policy, "symmetrization")
    if policy is Symmetrization.UNION:
        return M | M.T
    if policy is Symmetrization.INTERSECT:
        return M & M.T
    return M.copy()


def build_neighborhood_graph(
    X: np.ndarray,
    metric: str = "euclidean",
    neighborhood: Neighborhood = None,
    symmetric="union",
    distances: Optional[np.ndarray] = None,
    n_jobs=None,
) -> NeighborhoodGraph:
    """
    Build a neighborhood graph from a preprocessed data matrix.

    Parameters
    ----------
    X : np.ndarray
        (n, p) preprocessed data.
    metric : str
        Distance metric, ignored when distances are given.
    neighborhood : Neighborhood
        knn(k), enn(radius) or proportion(ratio). Defaults to proportion(0.1).
    symmetric : str or Symmetrization
        'union', 'intersect' or 'asymmetric'.
    distances : np.ndarray, optional
        Precomputed (n, n) distance matrix.

    Returns
    -------
    NeighborhoodGraph
    """
    if neighborhood is None:
        neighborhood = Neighborhood.proportion(0.1)
    neighborhood = Neighborhood.parse(neighborhood)
    policy = _parse_enum(Symmetrization, symmetric, "symmetrization")
    n = X.shape[0]
    if distances is None:
        distances = pairwise_distances(X, metric=metric, n_jobs=n_jobs)
    elif distances.shape != (n, n):
        raise ValidationError(f"distances must be ({n}, {n}), shape={distances.shape}", stage="graph")

    M = directed_mask(distances, neighborhood)
    mask = symmetrize_mask(M, policy)

    n_edges = int(mask.sum())
    if n_edges == 0:
        raise ValidationError(
            f"neighborhood {neighborhood.kind.value}({neighborhood.value}) with '{policy.value}' "
            "produced an empty graph.", stage="graph")
    if n_edges == n * (n - 1):
        raise ValidationError(
            f"neighborhood {neighborhood.kind.value}({neighborhood.value}) with '{policy.value}' "
            "connects every pair of observations.", stage="graph")

    count_components(mask, directed=policy is Symmetrization.ASYMMETRIC)
    logger.debug(f"Neighborhood graph: n={n}, directed edges={n_edges}, policy={policy.value}")
    return NeighborhoodGraph(mask=mask, symmetric=policy)


def to_networkx(graph: NeighborhoodGraph, weights: Optional[np.ndarray] = None):
    """
    Export the graph to networkx. Asymmetric graphs become DiGraphs.
    Edge attribute 'weight' carries the weight matrix entries when given.
    """
    A = graph.mask.astype(np.float64)
    if weights is not None:
        A = np.where(graph.mask, weights, 0.0)
    create_using = nx.Graph if graph.is_symmetric else nx.DiGraph
    G = nx.from_numpy_array(A, create_using=create_using)
    G.add_nodes_from(range(graph.n_nodes))
    return G
