"""Building blocks of the conjugate-gradient step: gradients, preconditioning, rotations, slopes."""

from __future__ import annotations

from functools import partial
from typing import Any, Optional

import numpy as np

from nlcg.communicator import Communicator
from nlcg.linalg import add, inner, solve_sym, transform
from nlcg.mvector import MVector, eval_threaded, tapply, total


def _matmul(a, b) -> np.ndarray:
    return transform(None, 0.0, 1.0, a, b)


def _inner_trace(a, b) -> complex:
    """Trace of ``a^H @ b``."""
    return np.vdot(np.asarray(a), np.asarray(b))


def _lmult(x, sx, hx, prec) -> np.ndarray:
    # ll = (SX^H K SX)^{-1} (SX^H K HX), result SX @ ll
    xkx = inner(sx, prec(sx))
    xkhx = inner(sx, prec(hx))
    ll = solve_sym(xkx, xkhx)
    return _matmul(sx, ll)


def _gradx(x, hx, fn, xll, wk) -> np.ndarray:
    hx = np.asarray(hx)
    xll = np.asarray(xll)
    dtype = np.result_type(hx, xll, float)
    g_x = np.array(wk * hx * np.asarray(fn)[np.newaxis, :], dtype=dtype)
    add(g_x, xll, -wk)
    return g_x


def _apply_preconditioner(prec, array: np.ndarray) -> np.ndarray:
    apply_in_place = getattr(prec, "apply_in_place", None)
    if callable(apply_in_place):
        apply_in_place(array)
        return array
    return np.asarray(prec(array))


def _residual(x, hx, xll) -> np.ndarray:
    delta_x = np.zeros(np.shape(x), dtype=np.result_type(np.asarray(x), np.asarray(hx), np.asarray(xll)))
    add(delta_x, hx, -1.0, 0.0)
    add(delta_x, xll, 1.0)
    return delta_x


def _precondgx(x, hx, prec, xll) -> np.ndarray:
    return _apply_preconditioner(prec, _residual(x, hx, xll))


def _precondgx_us(sx, hx, prec, xll) -> np.ndarray:
    return np.asarray(prec(_residual(sx, hx, xll)))


def _rotatex(x, u) -> np.ndarray:
    return _matmul(x, u)


def _rotateeta(eta, u) -> np.ndarray:
    return inner(u, _matmul(eta, u))


def _slope_x(gx, zx) -> complex:
    return 2 * _inner_trace(gx, zx)


def _slope_eta(geta, zeta) -> complex:
    return _inner_trace(geta, zeta)


def _conjugatex(zxp, x) -> np.ndarray:
    corr = _matmul(x, inner(x, zxp))
    return add(zxp, corr, -1.0, 1.0)


def _conjugatex_us(zxp, x, sx) -> np.ndarray:
    # ll = (SX^H SX)^{-1} (SX^H ZXP), zxp <- zxp - SX ll
    sx_zxp = inner(sx, zxp)
    sx2 = inner(sx, sx)
    ll = solve_sym(sx2, sx_zxp)
    return add(zxp, _matmul(sx, ll), -1.0, 1.0)


def _conjugateeta(deta, zep, gamma) -> np.ndarray:
    return add(zep, deta, 1.0, gamma)


def _reduce_real(values: MVector, commk: Optional[Communicator]) -> float:
    return float(np.real(total(eval_threaded(values), commk)))


def lagrange_multipliers(x, sx, hx, prec) -> MVector:
    """Deferred ``SX (SX^H K SX)^{-1} SX^H K HX`` per k-point."""
    return tapply(_lmult, x, sx, hx, prec)


def grad_x(x, hx, fn, xll, wk) -> MVector:
    """Deferred gradient ``wk * HX diag(fn) - wk * X ll`` per k-point."""
    return tapply(_gradx, x, hx, fn, xll, wk)


def precond_grad_x(x, hx, prec, xll) -> MVector:
    """Deferred preconditioned gradient ``K (X ll - HX)``, applied in place."""
    return tapply(_precondgx, x, hx, prec, xll)


def precond_grad_x_us(sx, hx, prec, xll) -> MVector:
    """Deferred preconditioned gradient for the ultrasoft case, ``K(X ll - HX)``."""
    return tapply(_precondgx_us, sx, hx, prec, xll)


def rotate_x(x, u) -> MVector:
    """Deferred subspace rotation ``X @ U``."""
    return tapply(_rotatex, x, u)


def rotate_eta(eta, u) -> MVector:
    """Deferred subspace rotation ``U^H @ eta @ U``."""
    return tapply(_rotateeta, eta, u)


def compute_slope(gx, zx, geta, zeta, commk=None) -> tuple[float, float]:
    """Slopes along the search direction for X and for eta, reduced over k-points."""
    return slope_x(gx, zx, commk), slope_eta(geta, zeta, commk)


def compute_slope_single(gx, zx, geta, zeta, commk=None) -> float:
    """Total slope along the search direction."""
    slope_of_x, slope_of_eta = compute_slope(gx, zx, geta, zeta, commk)
    return slope_of_x + slope_of_eta


def slope_eta(geta, zeta, commk=None) -> float:
    """Real part of the sum over k-points of ``tr(geta^H zeta)``."""
    return _reduce_real(tapply(_slope_eta, geta, zeta), commk)


def slope_x(gx, zx, commk=None) -> float:
    """Real part of the sum over k-points of ``2 tr(gx^H zx)``."""
    return _reduce_real(tapply(_slope_x, gx, zx), commk)


def conjugate_x(zxp, x, gamma=None) -> MVector:
    """Deferred projection of the previous direction out of span(X); overwrites ``zxp``."""
    return tapply(_conjugatex, zxp, x)


def apply_lagrange_mult_us(zxp, x, sx, gamma=None) -> MVector:
    """Deferred ultrasoft projection ``zxp - SX (SX^H SX)^{-1} SX^H zxp``; overwrites ``zxp``."""
    return tapply(_conjugatex_us, zxp, x, sx)


def conjugate_eta(deta, zep, gamma: Any) -> MVector:
    """Deferred ``zep <- deta + gamma * zep``; overwrites ``zep``."""
    return tapply(partial(_conjugateeta, gamma=gamma), deta, zep)