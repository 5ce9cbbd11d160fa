"""
solvers.py
----------
Sparse regression oracles for coefficient-based feature selection.

The engine only ever sees the coefficient vector a solver returns; any
callable solver(X, y) -> coef of length p can be used instead of these.
Both adapters are parameterized on the unnormalized objectives

    LASSO : 1/2 ||X b - y||^2 + lambda ||b||_1
    ENET  : 1/2 ||X b - y||^2 + lambda1 ||b||_1 + lambda2 ||b||_2^2

and translated to scikit-learn's per-sample scaling.
"""

import logging
from typing import Callable

import numpy as np
from sklearn.linear_model import ElasticNet, Lasso

from spectral_engine.exceptions import ValidationError

logger = logging.getLogger(__name__)

SparseSolver = Callable[[np.ndarray, np.ndarray], np.ndarray]


def _check_penalty(value: float, name: str) -> float:
    value = float(value)
    if not np.isfinite(value) or value <= 0:
        raise ValidationError(f"'{name}' should be a positive real number, got {value}.", stage="validation")
    return value


def lasso_solver(lam: float = 1.0, max_iter: int = 10000, tol: float = 1e-6) -> SparseSolver:
    lam = _check_penalty(lam, "lambda")

    def _solve(X: np.ndarray, y: np.ndarray) -> np.ndarray:
        n = X.shape[0]
        model = Lasso(alpha=lam / n, fit_intercept=False, max_iter=max_iter, tol=tol)
        model.fit(X, y)
        return model.coef_

    return _solve


def elastic_net_solver(lambda1: float = 1.0, lambda2: float = 1.0,
                       max_iter: int = 10000, tol: float = 1e-6) -> SparseSolver:
    lambda1 = _check_penalty(lambda1, "lambda1")
    lambda2 = _check_penalty(lambda2, "lambda2")
    # alpha * l1_ratio = lambda1 / n ; alpha * (1 - l1_ratio) = 2 * lambda2 / n
    l1_ratio = lambda1 / (lambda1 + 2.0 * lambda2)

    def _solve(X: np.ndarray, y: np.ndarray) -> np.ndarray:
        n = X.shape[0]
        alpha = (lambda1 + 2.0 * lambda2) / n
        model = ElasticNet(alpha=alpha, l1_ratio=l1_ratio, fit_intercept=False,
                           max_iter=max_iter, tol=tol)
        model.fit(X, y)
        return model.coef_

    return _solve
