import numpy as np
import pytest

from directodom.solve import solve_cholesky, solve_cholesky_scaled


def _make_system(dim, num_obs, seed=0):
    rng = np.random.default_rng(seed)
    j = rng.uniform(-1.0, 1.0, size=(num_obs, dim))
    a = j.T @ j
    x = rng.uniform(-1.0, 1.0, size=dim)
    return a, x, a @ x


def test_solve_cholesky():
    a, x_true, b = _make_system(10, 100)
    x = solve_cholesky(a, b)
    np.testing.assert_allclose(x, x_true, rtol=1e-8, atol=1e-10)


def test_solve_cholesky_scaled():
    a, x_true, b = _make_system(10, 100, seed=1)
    x, xs = solve_cholesky_scaled(a, b)
    np.testing.assert_allclose(x, x_true, rtol=1e-8, atol=1e-10)
    assert xs.shape == (10,)


def test_solve_cholesky_uses_lower_triangle_only():
    a, x_true, b = _make_system(6, 40, seed=2)
    corrupted = np.tril(a) + np.triu(np.full_like(a, 123.0), 1)
    x = solve_cholesky(corrupted, b)
    np.testing.assert_allclose(x, x_true, rtol=1e-8, atol=1e-10)


def test_solve_cholesky_identity():
    x = solve_cholesky(np.eye(3), [1.0, 2.0, 3.0])
    np.testing.assert_allclose(x, [1.0, 2.0, 3.0])


def test_solve_cholesky_shape_mismatch():
    with pytest.raises(ValueError):
        solve_cholesky(np.eye(3), np.ones(4))


def test_solve_cholesky_not_positive_definite():
    with pytest.raises(np.linalg.LinAlgError):
        solve_cholesky(-np.eye(2), np.ones(2))