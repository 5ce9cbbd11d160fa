"""
parallel_utils.py
-----------------
joblib helpers for the two embarrassingly parallel steps of the engine:
the O(n^2) distance matrix and per-feature scoring. Work is cut into
contiguous blocks and stitched back by position, so the output never
depends on the order in which workers finish.
"""

import os
import logging
import shutil
from contextlib import contextmanager

import numpy as np
from joblib import Parallel, delayed
from scipy.spatial.distance import cdist

logger = logging.getLogger(__name__)


@contextmanager
def parallel_context(n_jobs=None, temp_folder=None):
    """
    Resolve the worker count and clean up a memmap folder on exit.

    Parameters:
    -----------
    n_jobs : int or None
        Requested workers. None means all CPUs but one.
    temp_folder : str or None
        Folder removed when the block exits.

    Yields:
    -------
    n_jobs : int
    """
    if n_jobs is None:
        n_jobs = max(1, (os.cpu_count() or 2) - 1)
    try:
        yield n_jobs
    finally:
        if temp_folder and os.path.exists(temp_folder):
            try:
                shutil.rmtree(temp_folder)
            except OSError as e:
                logger.warning(f"Could not remove temp folder {temp_folder}: {e}")


def _blocks(size, block_size):
    return [(start, min(start + block_size, size)) for start in range(0, size, block_size)]


def parallel_distance_matrix(X, Y=None, metric='euclidean', n_jobs=None, chunk_size=1000):
    """
    Distance matrix between the rows of X and Y, computed in row blocks.

    Parameters:
    -----------
    X : ndarray (n_x, p)
    Y : ndarray (n_y, p) or None
        Defaults to X.
    metric : str
        Any metric name scipy's cdist accepts.
    n_jobs : int or None
        Number of workers.
    chunk_size : int
        Rows of X per block. Inputs with fewer rows are done in one call.

    Returns:
    --------
    D : ndarray (n_x, n_y)
    """
    if Y is None:
        Y = X
    n_x = X.shape[0]
    if n_x <= chunk_size:
        return cdist(X, Y, metric=metric)

    spans = _blocks(n_x, chunk_size)
    with parallel_context(n_jobs=n_jobs) as n_jobs:
        logger.debug(f"Distance matrix {n_x}x{Y.shape[0]} in {len(spans)} row blocks, n_jobs={n_jobs}")
        parts = Parallel(n_jobs=n_jobs)(
            delayed(cdist)(X[lo:hi], Y, metric=metric) for lo, hi in spans
        )
    return np.vstack(parts)


def parallel_column_map(func, X, n_jobs=None, chunk_size=256):
    """
    Apply func to column blocks of X and concatenate the 1D outputs.
    func(X_block) must return one value per column of X_block.
    """
    p = X.shape[1]
    if n_jobs is None or n_jobs == 1 or p <= chunk_size:
        return np.asarray(func(X))

    spans = _blocks(p, chunk_size)
    with parallel_context(n_jobs=n_jobs) as n_jobs:
        results = Parallel(n_jobs=n_jobs)(delayed(func)(X[:, lo:hi]) for lo, hi in spans)
    return np.concatenate([np.asarray(r) for r in results])
