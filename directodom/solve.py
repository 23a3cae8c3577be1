"""Cholesky solvers for symmetric positive definite systems."""

from __future__ import annotations

import numpy as np
import scipy.linalg

__all__ = ["solve_cholesky", "solve_cholesky_scaled"]


def solve_cholesky(a, b) -> np.ndarray:
    """Solve ``a x = b`` with an LLT factorization of the lower triangle of ``a``."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float).reshape(-1)
    n = b.size
    if a.shape != (n, n):
        raise ValueError(f"matrix shape {a.shape} does not match vector size {n}")
    factor = scipy.linalg.cho_factor(a, lower=True)
    return scipy.linalg.cho_solve(factor, b)


def solve_cholesky_scaled(a, b) -> tuple[np.ndarray, np.ndarray]:
    """Solve ``a x = b`` after symmetric diagonal scaling.

    With ``s = 1 / sqrt(|diag(a)| + 10)`` the scaled system
    ``(S a S) xs = S b`` is solved; returns ``(x, xs)`` with ``x = S xs``.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float).reshape(-1)
    s = 1.0 / np.sqrt(np.abs(np.diag(a)) + 10.0)
    xs = solve_cholesky(s[:, None] * a * s[None, :], s * b)
    return s * xs, xs