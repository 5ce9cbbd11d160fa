#!/usr/bin/env python3
"""
metrics.py
-----------------------------
Quality measures for low-dimensional embeddings.

- Trustworthiness and k-NN overlap, for how well local neighborhoods survive
  the projection
- Class separation margin along a 1D projection
"""

import numpy as np
from sklearn.manifold import trustworthiness as _sk_trustworthiness
from sklearn.neighbors import NearestNeighbors


def embedding_trustworthiness(X: np.ndarray, Y: np.ndarray, n_neighbors: int = 5) -> float:
    """
    Trustworthiness of embedding Y of X, in [0, 1]; 1 means no point gains
    neighbors in Y that it did not have in X.
    """
    return float(_sk_trustworthiness(X, Y, n_neighbors=n_neighbors))


def neighborhood_preservation(X: np.ndarray, Y: np.ndarray, n_neighbors: int = 5) -> float:
    """
    Mean fraction of each point's k nearest neighbors in X that are also
    among its k nearest neighbors in Y.

    Parameters
    ----------
    X : np.ndarray
        Original (n, p) data.
    Y : np.ndarray
        Embedded (n, d) data.
    n_neighbors : int
        Neighborhood size k.

    Returns
    -------
    float
        Overlap in [0, 1].
    """
    def _knn(Z):
        nbrs = NearestNeighbors(n_neighbors=n_neighbors + 1).fit(Z)
        _, indices = nbrs.kneighbors(Z)
        return indices[:, 1:]

    nx_idx = _knn(X)
    ny_idx = _knn(Y)
    overlap = [len(set(a).intersection(b)) / n_neighbors for a, b in zip(nx_idx, ny_idx)]
    return float(np.mean(overlap))


def class_separation(y: np.ndarray, labels: np.ndarray) -> float:
    """
    Gap between the two most distant class means of a 1D projection,
    divided by the largest within-class standard deviation.
    """
    y = np.asarray(y, dtype=np.float64).ravel()
    labels = np.asarray(labels)
    classes = np.unique(labels)
    means = np.array([y[labels == c].mean() for c in classes])
    spread = max(y[labels == c].std() for c in classes)
    gap = means.max() - means.min()
    if spread == 0:
        return np.inf if gap > 0 else 0.0
    return float(gap / spread)
