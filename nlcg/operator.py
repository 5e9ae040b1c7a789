"""Per-k-point operators supplied by the caller, usable like arrays of functions."""

from __future__ import annotations

from typing import Iterator

import numpy as np

from nlcg.communicator import Communicator
from nlcg.interface import BufferProtocol, MemoryType, OpBase, UltrasoftPrecondBase


def _as_buffer(array: np.ndarray) -> BufferProtocol:
    """Describe a column-major array as a buffer sharing its memory."""
    if array.ndim == 1:
        return BufferProtocol((1,), array.shape, array, MemoryType.HOST, Communicator())
    if array.ndim != 2:
        raise ValueError("only one- and two-dimensional arrays are supported")
    nrows, ncols = array.shape
    flat = array.ravel(order="F")
    return BufferProtocol(
        (1, max(nrows, 1)), (nrows, ncols), flat, MemoryType.HOST, Communicator()
    )


class Applicator:
    """Applies an operator for one fixed k-point index."""

    def __init__(self, op: OpBase, key) -> None:
        self.op = op
        self.key = (int(key[0]), int(key[1]))

    def __call__(self, x):
        x = np.asfortranarray(x)
        y = np.zeros(x.shape, dtype=x.dtype, order="F")
        self.op.apply(self.key, _as_buffer(y), _as_buffer(x))
        return y

    def __repr__(self) -> str:
        return f"Applicator(key={self.key})"


class USPreconditioner:
    """Ultrasoft preconditioner, indexed by k-point like an MVector."""

    def __init__(self, us_precond_base: UltrasoftPrecondBase) -> None:
        self.us_precond_base = us_precond_base

    def at(self, key) -> Applicator:
        """Preconditioner application for ``key``."""
        return Applicator(self.us_precond_base, key)

    def __getitem__(self, key) -> Applicator:
        return self.at(key)

    def keys(self) -> list[tuple[int, int]]:
        """K-point indices the preconditioner is defined for."""
        return [(int(a), int(b)) for a, b in self.us_precond_base.get_keys()]

    def __iter__(self) -> Iterator[tuple[tuple[int, int], Applicator]]:
        for key in self.keys():
            yield key, self.at(key)