"""
methods.py
----------
Named linear dimension-reduction methods built on the shared pipeline.

Each wrapper only fixes a weight strategy, a spectrum end and its own
defaults; all numerical work happens in embedding_algorithms.

    lpp    : locality preserving projection (heat kernel, smallest)
    odp    : orthogonal discriminant projection (discriminant split, largest)
    slpe   : supervised locality pursuit embedding (class blocks, smallest)
    lscore : Laplacian score feature selection
    lasso  : LASSO coefficient feature selection
    enet   : elastic net coefficient feature selection
"""

import math

from spectral_engine.config import EngineConfig, Extremum, Neighborhood, PreprocessKind, WeightStrategy
from spectral_engine.embedding_algorithms import (
    compute_embedding,
    select_features_by_laplacian_score,
    select_features_by_solver,
)
from spectral_engine.solvers import elastic_net_solver, lasso_solver


def lpp(X, ndim=2, neighborhood=None, symmetric="union", preprocess="center", t=1.0, **kwargs):
    """
    Locality Preserving Projection: a linear approximation to Laplacian
    eigenmaps. An infinite bandwidth t switches to binary weights.
    """
    weight = WeightStrategy.binary() if math.isinf(t) else WeightStrategy.heat(t)
    config = EngineConfig(
        ndim=ndim,
        preprocess=preprocess,
        neighborhood=neighborhood or Neighborhood.proportion(0.1),
        symmetric=symmetric,
        weight=weight,
        extremum=Extremum.SMALLEST,
        **kwargs,
    )
    return compute_embedding(X, config)


def odp(X, label, ndim=2, preprocess="center", neighborhood=None, symmetric="union",
        alpha=0.5, beta=10.0, **kwargs):
    """
    Orthogonal Discriminant Projection. alpha in [0, 1] balances local
    against non-local scatter; beta > 0 scales the pair affinities.
    """
    config = EngineConfig(
        ndim=ndim,
        preprocess=preprocess,
        neighborhood=neighborhood or Neighborhood.proportion(0.1),
        symmetric=symmetric,
        weight=WeightStrategy.discriminant_split(alpha=alpha, beta=beta),
        extremum=Extremum.LARGEST,
        **kwargs,
    )
    return compute_embedding(X, config, labels=label)


def slpe(X, label, ndim=2, preprocess="center", **kwargs):
    config = EngineConfig(
        ndim=ndim,
        preprocess=preprocess,
        weight=WeightStrategy.class_block(),
        extremum=Extremum.SMALLEST,
        pca_prefilter=True,
        **kwargs,
    )
    return compute_embedding(X, config, labels=label)


def lscore(X, ndim=2, neighborhood=None, preprocess=PreprocessKind.NONE, t=10.0, **kwargs):
    return select_features_by_laplacian_score(
        X, ndim=ndim, neighborhood=neighborhood or Neighborhood.proportion(0.1),
        preprocess=preprocess, t=t, **kwargs)


def lasso(X, response, ndim=2, preprocess=PreprocessKind.NONE, ycenter=False, lam=1.0):
    """LASSO feature selection: keeps the ndim largest |coefficients|."""
    return select_features_by_solver(X, response, lasso_solver(lam), ndim=ndim,
                                     preprocess=preprocess, ycenter=ycenter)


def enet(X, response, ndim=2, preprocess=PreprocessKind.NONE, ycenter=False, lambda1=1.0, lambda2=1.0):
    """Elastic net feature selection: keeps the ndim largest |coefficients|."""
    return select_features_by_solver(X, response, elastic_net_solver(lambda1, lambda2), ndim=ndim,
                                     preprocess=preprocess, ycenter=ycenter)
