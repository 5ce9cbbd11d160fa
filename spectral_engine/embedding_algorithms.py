"""
embedding_algorithms.py
-----------------------
Assembles embeddings: the full graph -> weights -> eigenproblem pipeline,
and the feature-selection variants that replace the eigenbasis with a 0/1
column selector (Laplacian score, external sparse solvers).
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from spectral_engine import preprocessing
from spectral_engine import eigensolver
from spectral_engine.config import EngineConfig, Neighborhood, NeighborhoodKind, Symmetrization, WeightStrategy
from spectral_engine.exceptions import ComputationError, ValidationError
from spectral_engine.graph_methods import build_neighborhood_graph, pairwise_distances
from spectral_engine.kernels import build_scatter_pair, build_weights, heat_kernel_weights, laplacian_score
from spectral_engine.normalization import normalize
from spectral_engine.preprocessing import TransformInfo
from spectral_engine.solvers import SparseSolver
from spectral_engine.utils import stable_order, validate_data_matrix, validate_labels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingResult:
    """
    Embedded coordinates with everything needed to embed new data.

    Attributes
    ----------
    coordinates : np.ndarray
        (n, ndim) embedded observations.
    projection : np.ndarray
        (p, ndim) basis; orthonormal columns.
    transform_info : TransformInfo
        Fitted preprocessing parameters.
    selected_features : np.ndarray or None
        Column indices kept by feature-selection variants.
    eigenvalues : np.ndarray or None
        Solver eigenvalues of the raw eigenvectors, before orthonormalization.
        For a generalized problem they are not Rayleigh quotients of the
        projection columns past the first.
    feature_scores : np.ndarray or None
        Per-feature scores used for selection.
    """
    coordinates: np.ndarray
    projection: np.ndarray
    transform_info: TransformInfo
    selected_features: Optional[np.ndarray] = None
    eigenvalues: Optional[np.ndarray] = None
    feature_scores: Optional[np.ndarray] = None

    @property
    def ndim(self) -> int:
        return self.projection.shape[1]

    def transform(self, X_new) -> np.ndarray:
        """Embed unseen observations with the stored preprocessing and projection."""
        return preprocessing.replay(self.transform_info, X_new) @ self.projection


##################################################
# Assembly
##################################################

def assemble(pX: np.ndarray, projection: np.ndarray, info: TransformInfo,
             selected_features=None, eigenvalues=None, feature_scores=None) -> EmbeddingResult:
    if projection.ndim != 2 or projection.shape[0] != pX.shape[1]:
        raise ComputationError(
            f"projection shape {projection.shape} does not match data with {pX.shape[1]} columns.",
            stage="assembly")
    coordinates = pX @ projection

    def _own(a, dtype=None):
        return None if a is None else np.array(a, dtype=dtype, copy=True)

    return EmbeddingResult(
        coordinates=coordinates,
        projection=_own(projection),
        transform_info=info,
        selected_features=_own(selected_features, dtype=np.intp),
        eigenvalues=_own(eigenvalues),
        feature_scores=_own(feature_scores),
    )


def feature_indicator(p: int, idx) -> np.ndarray:
    """(p, len(idx)) matrix whose k-th column selects original column idx[k]."""
    idx = np.asarray(idx, dtype=np.intp)
    P = np.zeros((p, idx.size))
    P[idx, np.arange(idx.size)] = 1.0
    return P


def assemble_from_coefficients(pX: np.ndarray, coef, ndim: int, info: TransformInfo) -> EmbeddingResult:
    """
    Keep the ndim columns with the largest |coef| (ties by column index).
    """
    p = pX.shape[1]
    coef = np.asarray(coef, dtype=np.float64).ravel()
    if coef.shape[0] != p:
        raise ComputationError(f"solver returned {coef.shape[0]} coefficients for {p} columns.", stage="solver")
    if not np.isfinite(coef).all():
        raise ComputationError("solver returned non-finite coefficients.", stage="solver")
    idx = stable_order(np.abs(coef), descending=True)[:ndim]
    return assemble(pX, feature_indicator(p, idx), info,
                    selected_features=idx, feature_scores=np.abs(coef))


##################################################
# Graph spectral pipeline
##################################################

def _check_inputs(X, ndim: int, labels=None, require_labels: bool = False, neighborhood=None):
    X = validate_data_matrix(X)
    n, p = X.shape
    if ndim >= p:
        raise ValidationError(f"ndim must satisfy 1 <= ndim < p; got ndim={ndim}, p={p}.", stage="validation")
    if neighborhood is not None and neighborhood.kind is NeighborhoodKind.KNN and neighborhood.value >= n:
        raise ValidationError(f"knn requires k < n; got k={neighborhood.value}, n={n}.", stage="validation")
    if require_labels:
        if labels is None:
            raise ValidationError("this weight strategy needs class labels.", stage="validation")
        labels = validate_labels(labels, n, require_pairs=True)
    elif labels is not None:
        labels = validate_labels(labels, n)
    return X, labels


def compute_embedding(X, config: Optional[EngineConfig] = None, labels=None) -> EmbeddingResult:
    """
    Run the projection pipeline on X.

    preprocess -> neighborhood graph -> weights -> scatter pair
    -> generalized eigenproblem -> normalized projection -> coordinates

    Parameters
    ----------
    X : array-like
        (n, p) data matrix.
    config : EngineConfig, optional
        Defaults to EngineConfig().
    labels : array-like, optional
        Class labels, required by class_block and discriminant_split.

    Returns
    -------
    EmbeddingResult
    """
    if config is None:
        config = EngineConfig()
    strategy = config.weight
    X, labels = _check_inputs(X, config.ndim, labels, require_labels=strategy.requires_labels,
                              neighborhood=config.neighborhood if strategy.requires_graph else None)
    n, p = X.shape
    logger.info(f"Embedding {n}x{p} matrix: weight={strategy.kind.value}, ndim={config.ndim}, "
                f"extremum={config.resolved_extremum.value}")

    pX, info = preprocessing.fit(X, config.preprocess)

    graph = sqdist = None
    if strategy.requires_graph:
        dist = pairwise_distances(pX, metric=config.metric, n_jobs=config.n_jobs)
        graph = build_neighborhood_graph(pX, neighborhood=config.neighborhood,
                                         symmetric=config.symmetric, distances=dist)
        sqdist = dist ** 2
    W = build_weights(strategy, graph=graph, sqdist=sqdist, labels=labels)

    first = preprocessing.pca_prefilter(pX, config.ndim, config.rank_tol) if config.pca_prefilter else None
    Z = pX if first is None else pX @ first
    pair = build_scatter_pair(Z, W, strategy)

    solution = eigensolver.solve(pair.lhs, pair.rhs, config.ndim,
                                 extremum=config.resolved_extremum, rank_tol=config.rank_tol)
    raw = solution.vectors if first is None else first @ solution.vectors
    projection = normalize(raw)
    return assemble(pX, projection, info, eigenvalues=solution.values)


##################################################
# Feature selection
##################################################

def select_features_by_laplacian_score(X, ndim: int = 2, neighborhood=None, preprocess="none",
                                       t: float = 10.0, metric: str = "euclidean",
                                       n_jobs=None) -> EmbeddingResult:
    """
    Laplacian-score feature selection: heat-kernel weights on a union
    neighborhood graph, one score per column, the ndim highest scores kept.
    """
    strategy = WeightStrategy.heat(t)
    neighborhood = Neighborhood.parse(neighborhood or Neighborhood.proportion(0.1))
    X, _ = _check_inputs(X, ndim, neighborhood=neighborhood)
    pX, info = preprocessing.fit(X, preprocess)
    dist = pairwise_distances(pX, metric=metric, n_jobs=n_jobs)
    graph = build_neighborhood_graph(pX, neighborhood=neighborhood,
                                     symmetric=Symmetrization.UNION, distances=dist)
    W = heat_kernel_weights(graph, dist ** 2, strategy.t)
    scores = laplacian_score(pX, W, n_jobs=n_jobs)
    idx = stable_order(scores, descending=True)[:ndim]
    logger.info(f"Laplacian score selected columns {idx.tolist()}")
    return assemble(pX, feature_indicator(pX.shape[1], idx), info,
                    selected_features=idx, feature_scores=scores)


def select_features_by_solver(X, response, solver: SparseSolver, ndim: int = 2,
                              preprocess="none", ycenter: bool = False) -> EmbeddingResult:
    """
    Feature selection from an external sparse regression: the solver is
    called once on the preprocessed data and only its coefficients are used.
    """
    X, _ = _check_inputs(X, ndim)
    y = np.asarray(response, dtype=np.float64)
    if y.ndim != 1 or y.shape[0] != X.shape[0] or not np.isfinite(y).all():
        raise ValidationError("'response' should be a finite vector with one entry per row.", stage="validation")
    pX, info = preprocessing.fit(X, preprocess)
    if ycenter:
        y = y - y.mean()
    coef = solver(pX, y)
    return assemble_from_coefficients(pX, coef, ndim, info)
