import numpy as np
import pytest

from nlcg.interface import UltrasoftPrecondBase
from nlcg.mvector import MVector, eval_threaded
from nlcg.mvp2 import (
    apply_lagrange_mult_us,
    compute_slope,
    compute_slope_single,
    conjugate_eta,
    conjugate_x,
    grad_x,
    lagrange_multipliers,
    precond_grad_x,
    precond_grad_x_us,
    rotate_eta,
    rotate_x,
    slope_eta,
    slope_x,
)
from nlcg.operator import USPreconditioner

KEYS = [(0, 0), (1, 0)]


def _random_complex(rng, shape):
    return rng.standard_normal(shape) + 1j * rng.standard_normal(shape)


def _orthonormal(rng, n, m):
    q, _ = np.linalg.qr(_random_complex(rng, (n, m)))
    return np.asfortranarray(q)


def _mv(make):
    return MVector({key: make() for key in KEYS})


def _identity(v):
    return v


class _Noop:
    def apply_in_place(self, array):
        pass


class _Scale:
    def __init__(self, factor):
        self.factor = factor

    def apply_in_place(self, array):
        array *= self.factor


class _CopyOp(UltrasoftPrecondBase):
    def apply(self, key, out, inp):
        out.as_array()[...] = inp.as_array()

    def get_keys(self):
        return list(KEYS)


def test_rotate_x_identity():
    rng = np.random.default_rng(0)
    x = _mv(lambda: _orthonormal(rng, 10, 3))
    u = _mv(lambda: np.eye(3, dtype=complex))
    result = eval_threaded(rotate_x(x, u))
    assert list(result) == KEYS
    for key in KEYS:
        assert np.allclose(result[key], x[key])


def test_rotate_x_unitary_keeps_orthonormality():
    rng = np.random.default_rng(1)
    x = _mv(lambda: _orthonormal(rng, 10, 3))
    u = _mv(lambda: _orthonormal(rng, 3, 3))
    result = eval_threaded(rotate_x(x, u))
    for key in KEYS:
        assert np.allclose(result[key].conj().T @ result[key], np.eye(3))


def test_rotate_eta_preserves_spectrum():
    rng = np.random.default_rng(2)

    def hermitian():
        a = _random_complex(rng, (4, 4))
        return a + a.conj().T

    eta = _mv(hermitian)
    u = _mv(lambda: _orthonormal(rng, 4, 4))
    result = eval_threaded(rotate_eta(eta, u))
    for key in KEYS:
        assert np.allclose(np.linalg.eigvalsh(result[key]), np.linalg.eigvalsh(eta[key]))


def test_rotate_eta_identity():
    rng = np.random.default_rng(3)
    eta = _mv(lambda: _random_complex(rng, (3, 3)))
    u = _mv(lambda: np.eye(3, dtype=complex))
    result = eval_threaded(rotate_eta(eta, u))
    for key in KEYS:
        assert np.allclose(result[key], eta[key])


def test_conjugate_x_projects_out_span_in_place():
    rng = np.random.default_rng(4)
    x = _mv(lambda: _orthonormal(rng, 12, 4))
    zxp = _mv(lambda: _random_complex(rng, (12, 4)))
    result = eval_threaded(conjugate_x(zxp, x, 0.3))
    for key in KEYS:
        assert result[key] is zxp[key]
        assert np.allclose(x[key].conj().T @ result[key], 0.0, atol=1e-10)


def test_apply_lagrange_mult_us_orthogonal_to_sx():
    rng = np.random.default_rng(5)
    x = _mv(lambda: _random_complex(rng, (12, 4)))
    sx = _mv(lambda: _random_complex(rng, (12, 4)))
    zxp = _mv(lambda: _random_complex(rng, (12, 4)))
    result = eval_threaded(apply_lagrange_mult_us(zxp, x, sx, 0.0))
    for key in KEYS:
        assert np.allclose(sx[key].conj().T @ result[key], 0.0, atol=1e-9)


def test_lagrange_multipliers_residual_orthogonal():
    rng = np.random.default_rng(6)
    x = _mv(lambda: _random_complex(rng, (15, 3)))
    sx = _mv(lambda: _random_complex(rng, (15, 3)))
    hx = _mv(lambda: _random_complex(rng, (15, 3)))
    xll = eval_threaded(lagrange_multipliers(x, sx, hx, _identity))
    for key in KEYS:
        assert xll[key].shape == (15, 3)
        residual = hx[key] - xll[key]
        assert np.allclose(sx[key].conj().T @ residual, 0.0, atol=1e-9)


def test_lagrange_multipliers_with_us_preconditioner():
    rng = np.random.default_rng(7)
    x = _mv(lambda: _random_complex(rng, (9, 2)))
    sx = _mv(lambda: _random_complex(rng, (9, 2)))
    hx = _mv(lambda: _random_complex(rng, (9, 2)))
    prec = USPreconditioner(_CopyOp())
    with_op = eval_threaded(lagrange_multipliers(x, sx, hx, prec))
    plain = eval_threaded(lagrange_multipliers(x, sx, hx, _identity))
    for key in KEYS:
        assert np.allclose(with_op[key], plain[key])


def test_precond_grad_x_noop_preconditioner():
    rng = np.random.default_rng(8)
    x = _mv(lambda: _random_complex(rng, (6, 2)))
    hx = _mv(lambda: _random_complex(rng, (6, 2)))
    xll = _mv(lambda: _random_complex(rng, (6, 2)))
    result = eval_threaded(precond_grad_x(x, hx, _Noop(), xll))
    for key in KEYS:
        assert np.allclose(result[key] + hx[key], xll[key])


def test_precond_grad_x_scales_in_place():
    rng = np.random.default_rng(9)
    x = _mv(lambda: _random_complex(rng, (6, 2)))
    hx = _mv(lambda: _random_complex(rng, (6, 2)))
    xll = _mv(lambda: _random_complex(rng, (6, 2)))
    plain = eval_threaded(precond_grad_x(x, hx, _Noop(), xll))
    scaled = eval_threaded(precond_grad_x(x, hx, _Scale(3.0), xll))
    for key in KEYS:
        assert np.allclose(scaled[key], 3.0 * plain[key])


def test_precond_grad_x_us_matches_in_place_variant():
    rng = np.random.default_rng(10)
    sx = _mv(lambda: _random_complex(rng, (6, 2)))
    hx = _mv(lambda: _random_complex(rng, (6, 2)))
    xll = _mv(lambda: _random_complex(rng, (6, 2)))
    in_place = eval_threaded(precond_grad_x(sx, hx, _Scale(2.0), xll))
    functional = eval_threaded(precond_grad_x_us(sx, hx, lambda v: 2.0 * v, xll))
    for key in KEYS:
        assert np.allclose(in_place[key], functional[key])


def test_grad_x_vanishes_when_multipliers_match():
    rng = np.random.default_rng(11)
    x = _mv(lambda: _random_complex(rng, (7, 3)))
    hx = _mv(lambda: _random_complex(rng, (7, 3)))
    fn = _mv(lambda: np.ones(3))
    wk = MVector({key: 0.5 for key in KEYS})
    result = eval_threaded(grad_x(x, hx, fn, hx, wk))
    for key in KEYS:
        assert np.allclose(result[key], 0.0)


def test_grad_x_unoccupied_columns_only_keep_multiplier_term():
    rng = np.random.default_rng(12)
    x = _mv(lambda: _random_complex(rng, (7, 3)))
    hx = _mv(lambda: _random_complex(rng, (7, 3)))
    xll = _mv(lambda: _random_complex(rng, (7, 3)))
    fn = _mv(lambda: np.array([1.0, 1.0, 0.0]))
    wk = MVector({key: 0.25 for key in KEYS})
    zero_ll = _mv(lambda: np.zeros((7, 3), dtype=complex))
    result = eval_threaded(grad_x(x, hx, fn, xll, wk))
    no_ll = eval_threaded(grad_x(x, hx, fn, zero_ll, wk))
    for key in KEYS:
        assert np.allclose(result[key][:, 2], -0.25 * xll[key][:, 2])
        assert np.allclose(no_ll[key], 0.25 * hx[key] * fn[key])


def test_slopes_pinned_value():
    g = MVector({(0, 0): np.array([[1.0], [1j]])})
    assert slope_eta(g, g) == pytest.approx(2.0)
    assert slope_x(g, g) == pytest.approx(4.0)


def test_slope_invariants():
    rng = np.random.default_rng(13)
    gx = _mv(lambda: _random_complex(rng, (8, 3)))
    zx = _mv(lambda: _random_complex(rng, (8, 3)))
    neg = MVector({key: -value for key, value in gx.items()})
    assert slope_x(gx, gx) > 0
    assert slope_x(gx, neg) == pytest.approx(-slope_x(gx, gx))
    assert slope_x(gx, zx) == pytest.approx(2.0 * slope_eta(gx, zx))


def test_compute_slope_combines_parts():
    rng = np.random.default_rng(14)
    gx = _mv(lambda: _random_complex(rng, (8, 3)))
    zx = _mv(lambda: _random_complex(rng, (8, 3)))
    geta = _mv(lambda: _random_complex(rng, (3, 3)))
    zeta = _mv(lambda: _random_complex(rng, (3, 3)))
    sx, se = compute_slope(gx, zx, geta, zeta, gx.commk())
    assert sx == pytest.approx(slope_x(gx, zx))
    assert se == pytest.approx(slope_eta(geta, zeta))
    assert compute_slope_single(gx, zx, geta, zeta) == pytest.approx(sx + se)


def test_compute_slope_missing_key():
    gx = MVector({(0, 0): np.ones((2, 1)), (1, 0): np.ones((2, 1))})
    zx = MVector({(0, 0): np.ones((2, 1))})
    with pytest.raises(KeyError):
        compute_slope(gx, zx, gx, gx)


def test_conjugate_eta_zero_gamma_gives_deta():
    rng = np.random.default_rng(15)
    deta = _mv(lambda: _random_complex(rng, (3, 3)))
    zep = _mv(lambda: _random_complex(rng, (3, 3)))
    result = eval_threaded(conjugate_eta(deta, zep, 0.0))
    for key in KEYS:
        assert result[key] is zep[key]
        assert np.allclose(result[key], deta[key])


def test_conjugate_eta_scales_previous_direction():
    rng = np.random.default_rng(16)
    deta = _mv(lambda: np.zeros((3, 3), dtype=complex))
    zep = _mv(lambda: _random_complex(rng, (3, 3)))
    before = {key: value.copy() for key, value in zep.items()}
    result = eval_threaded(conjugate_eta(deta, zep, 2.0))
    for key in KEYS:
        assert np.allclose(result[key], 2.0 * before[key])