"""Dense linear algebra on single-rank matrices: products, Hermitian eigensolver, Cholesky solve."""

from __future__ import annotations

from typing import Any, Optional

import numpy as np


def _matrix(x: Any, name: str) -> np.ndarray:
    array = np.asarray(x)
    if array.ndim != 2:
        raise ValueError(f"{name} must be a two-dimensional matrix, got {array.ndim} dimensions")
    return array


def _accumulate(c: Optional[np.ndarray], beta, product: np.ndarray) -> np.ndarray:
    """Return ``beta * c + product``, written into ``c`` when it is given.

    With ``beta == 0`` the old contents of ``c`` are not read.
    """
    if c is None:
        return product
    if not isinstance(c, np.ndarray):
        raise TypeError("the output matrix must be a numpy array")
    if c.shape != product.shape:
        raise ValueError(f"output has shape {c.shape}, expected {product.shape}")
    if beta == 0:
        c[...] = product
    else:
        c[...] = beta * c + product
    return c


def eigh(s) -> tuple[np.ndarray, np.ndarray]:
    """Eigenvalues (ascending) and eigenvectors of a Hermitian matrix.

    Only the upper triangle of ``s`` is read. The eigenvectors are the columns
    of the second returned matrix.
    """
    s = _matrix(s, "s")
    if s.shape[0] != s.shape[1]:
        raise ValueError("eigh needs a square matrix")
    try:
        w, u = np.linalg.eigh(s, UPLO="U")
    except np.linalg.LinAlgError as err:
        raise RuntimeError("zheevd failed") from err
    return w, np.asfortranarray(u)


def solve_sym(a, rhs) -> np.ndarray:
    """Solve ``a @ x = rhs`` for Hermitian positive definite ``a`` by Cholesky.

    Only the upper triangle of ``a`` is read; the solution is returned.
    """
    a = _matrix(a, "a")
    rhs = _matrix(rhs, "rhs")
    n = a.shape[0]
    if a.shape[1] != n:
        raise ValueError("solve_sym needs a square matrix")
    if rhs.shape[0] != n:
        raise ValueError(f"right-hand side has {rhs.shape[0]} rows, expected {n}")
    upper = np.triu(a)
    hermitian = upper + np.triu(a, 1).conj().T
    try:
        lower = np.linalg.cholesky(hermitian)
        y = np.linalg.solve(lower, rhs)
        x = np.linalg.solve(lower.conj().T, y)
    except np.linalg.LinAlgError as err:
        raise RuntimeError("cholesky factorization failed") from err
    return np.asfortranarray(x)


def inner(a, b, alpha=1.0, beta=0.0, c=None) -> np.ndarray:
    """``alpha * a^H @ b + beta * c``; written into ``c`` when it is given."""
    a = _matrix(a, "a")
    b = _matrix(b, "b")
    if a.shape[0] != b.shape[0]:
        raise ValueError(f"row counts differ: {a.shape[0]} and {b.shape[0]}")
    return _accumulate(c, beta, alpha * (a.conj().T @ b))


def outer(a, b, alpha=1.0, beta=0.0, c=None) -> np.ndarray:
    """``alpha * a @ b^H + beta * c``; written into ``c`` when it is given."""
    a = _matrix(a, "a")
    b = _matrix(b, "b")
    if a.shape[1] != b.shape[1]:
        raise ValueError(f"column counts differ: {a.shape[1]} and {b.shape[1]}")
    return _accumulate(c, beta, alpha * (a @ b.conj().T))


def transform(c, beta, alpha, a, b) -> np.ndarray:
    """``beta * c + alpha * a @ b``; written into ``c`` unless it is None."""
    a = _matrix(a, "a")
    b = _matrix(b, "b")
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"inner dimensions differ: {a.shape[1]} and {b.shape[0]}")
    return _accumulate(c, beta, alpha * (a @ b))


def add(c, a, alpha, beta=1.0) -> np.ndarray:
    """``c <- beta * c + alpha * a`` in place; returns ``c``."""
    if not isinstance(c, np.ndarray):
        raise TypeError("the output matrix must be a numpy array")
    a = np.asarray(a)
    if c.shape != a.shape:
        raise ValueError(f"shapes differ: {c.shape} and {a.shape}")
    if beta == 0:
        c[...] = alpha * a
    else:
        c[...] = beta * c + alpha * a
    return c