"""Gradient of the free energy with respect to the pseudo-Hamiltonian eta."""

from __future__ import annotations

from typing import Callable

import numpy as np

from nlcg.communicator import MpiOp
from nlcg.mvector import MVector, tapply
from nlcg.traits import evaluate

DeltaFunction = Callable[[float, float], float]


def _check_kt(kt: float) -> float:
    kt = float(kt)
    if kt <= 0:
        raise ValueError("kT must be positive")
    return kt


def _delta_values(delta: DeltaFunction, x, mo: float) -> np.ndarray:
    """Evaluate the smearing delta function element by element."""
    return np.array([delta(float(v), mo) for v in np.ravel(x)], dtype=float)


class GradEtaHelper:
    """Derivatives of the free energy and the chemical potential with respect to eta.

    ``delta`` is the derivative of the smearing occupation function, called as
    ``delta(x, mo)`` with ``x = (e - mu) / kT``.
    """

    def __init__(self, delta: DeltaFunction) -> None:
        self.delta = delta

    def dfdmu(self, hii, en, fn, wk, mu, kt, mo) -> float:
        """Sum over k-points of ``w_k * sum_i (H_ii - e_i) delta_i``; the factor 1/kT is left out."""
        kt = _check_kt(kt)
        local = 0.0
        for key, diagonal in hii.items():
            h = np.asarray(evaluate(diagonal))
            e = np.asarray(evaluate(en[key]), dtype=float)
            d = _delta_values(self.delta, (e - mu) / kt, mo)
            value = np.sum((h - e) * d)
            local += float(np.real(value)) * float(evaluate(wk[key]))
        return wk.commk().allreduce(local, MpiOp.SUM)

    def dmu_deta(self, en, wk, mu, kt, mo) -> float:
        """Sum over k-points and bands of ``w_k * delta((e_i - mu) / kT)``."""
        kt = _check_kt(kt)
        total = 0.0
        for key, weight in wk.items():
            e = np.asarray(evaluate(en[key]), dtype=float)
            d = _delta_values(self.delta, (e - mu) / kt, mo)
            total += float(np.sum(d)) * float(evaluate(weight))
        return wk.commk().allreduce(total, MpiOp.SUM)


class DeltaEta:
    """Preconditioned eta direction ``kappa / w_k * H_ij - kappa * diag(e)``."""

    def __init__(self, kappa: float) -> None:
        self.kappa = float(kappa)

    def __call__(self, hij, ek, wk) -> np.ndarray:
        h = np.asarray(evaluate(hij))
        e = np.asarray(evaluate(ek), dtype=float)
        w = float(evaluate(wk))
        dtype = np.result_type(h, float)
        d_eta = np.array(h * (self.kappa / w), dtype=dtype, order="F")
        n = e.shape[0]
        idx = np.arange(n)
        d_eta[idx, idx] -= self.kappa * e
        return d_eta


class GradEta:
    """Gradient of the free energy in eta and its preconditioned form."""

    def __init__(self, kt: float, kappa: float, delta: DeltaFunction) -> None:
        self.kt = _check_kt(kt)
        self.kappa = float(kappa)
        self.delta = delta

    def g_eta(self, hij, mu, wk, ek, fn, dmu_deta, dfdmu, mo) -> np.ndarray:
        """Gradient of eta for one k-point."""
        h = np.asarray(evaluate(hij))
        e = np.asarray(evaluate(ek), dtype=float)
        f = np.asarray(evaluate(fn), dtype=float)
        n = h.shape[0]
        kt = self.kt
        g = np.zeros(h.shape, dtype=np.result_type(h, float), order="F")
        e = e[:n]
        f = f[:n]
        d = _delta_values(self.delta, (e - mu) / kt, mo)
        idx = np.arange(n)
        g[idx, idx] = -1.0 / kt * (h[idx, idx] - wk * e) * d
        if abs(dmu_deta) >= 1e-12:
            g[idx, idx] += wk * d / dmu_deta * (dfdmu / kt)

        # entry (i, j): (f_j - f_i) / (e_j - e_i) * H_ij, skipped for degenerate pairs
        energy_diff = e[np.newaxis, :] - e[:, np.newaxis]
        occupation_diff = f[np.newaxis, :] - f[:, np.newaxis]
        mask = np.abs(energy_diff) >= 1e-10
        np.fill_diagonal(mask, False)
        block = h[:n, :n]
        g[:n, :n][mask] += occupation_diff[mask] / energy_diff[mask] * block[mask]
        return g

    def delta_eta(self, hij, ek, wk) -> MVector:
        """Deferred preconditioned gradient ``kappa * (H_ij / w_k - diag(e))`` per k-point."""
        return tapply(DeltaEta(self.kappa), hij, ek, wk)