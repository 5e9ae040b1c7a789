"""Containers keyed by (k-point, spin) index and the operations applied across them."""

from __future__ import annotations

import sys
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable, Iterator, Optional, TextIO

import numpy as np

from nlcg.communicator import CommKind, Communicator, MpiOp
from nlcg.interface import BufferBase, MemoryType
from nlcg.traits import evaluate

Key = tuple[int, int]


def _key(key) -> Key:
    first, second = key
    return (int(first), int(second))


def _resolve_comm(comm: Optional[Communicator], own: Communicator) -> Communicator:
    if comm is None or comm.kind is CommKind.NULL:
        comm = own
    if comm < own:
        raise RuntimeError("most likely gave unintended communicator")
    return comm


def _zeros_like(value: Any) -> Any:
    value = evaluate(value)
    if isinstance(value, np.ndarray):
        return np.zeros_like(value)
    if isinstance(value, (int, float, complex, np.number)):
        return type(value)(0)
    raise TypeError(f"cannot create an empty entry like {type(value).__name__}")


def _host_copy(value: Any) -> Any:
    value = evaluate(value)
    if isinstance(value, np.ndarray):
        return np.array(value, copy=True)
    return value


class MVector(MutableMapping):
    """Entries keyed by (k-point, spin) index, iterated in sorted key order."""

    def __init__(self, data: Optional[Mapping] = None, comm: Optional[Communicator] = None) -> None:
        self._data: dict[Key, Any] = {}
        self._comm = comm if comm is not None else Communicator()
        if data is not None:
            for key, value in dict(data).items():
                self._data[_key(key)] = value

    def __getitem__(self, key) -> Any:
        return self._data[_key(key)]

    def __setitem__(self, key, value) -> None:
        self._data[_key(key)] = value

    def __delitem__(self, key) -> None:
        del self._data[_key(key)]

    def __iter__(self) -> Iterator[Key]:
        return iter(sorted(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        entries = ", ".join(f"{key}: {self._data[key]!r}" for key in self)
        return f"MVector({{{entries}}}, comm={self._comm!r})"

    def commk(self) -> Communicator:
        """Communicator over which the entries are distributed."""
        return self._comm

    def empty_like(self) -> "MVector":
        """Same keys and communicator, every entry zeroed."""
        return MVector({key: _zeros_like(value) for key, value in self.items()}, self._comm)

    def assign(self, other: Mapping) -> "MVector":
        """Replace each entry with the evaluated entry of ``other`` at the same key."""
        for key in list(self._data):
            self._data[key] = evaluate(other[key])
        return self

    def allgather(self, comm: Optional[Communicator] = None) -> "MVector":
        """Collect the entries of all ranks into one local container."""
        comm = _resolve_comm(comm, self._comm)
        gathered = comm.allgather([(key, _host_copy(value)) for key, value in self.items()])
        result = MVector(comm=Communicator(CommKind.SELF))
        for rank_entries in gathered:
            for key, value in rank_entries:
                result[key] = value
        return result


class _Deferred:
    """Zero-argument task computing ``func`` on evaluated arguments once."""

    def __init__(self, func: Callable, args: tuple) -> None:
        self._func = func
        self._args = args
        self._done = False
        self._value: Any = None

    def __call__(self) -> Any:
        if not self._done:
            self._value = self._func(*(evaluate(arg) for arg in self._args))
            self._done = True
            self._args = ()
        return self._value


def _element(arg: Any, key: Key) -> Any:
    if isinstance(arg, MVector):
        return arg[key]
    at = getattr(arg, "at", None)
    if callable(at):
        return at(key)
    return arg


def tapply(func: Callable, *args) -> MVector:
    """Apply ``func`` key by key; returns deferred results.

    MVector arguments are indexed by key, objects with an ``at`` method are asked
    for their entry at the key, anything else is passed unchanged.
    """
    keyed = [arg for arg in args if isinstance(arg, MVector)]
    if not keyed:
        raise TypeError("tapply needs at least one MVector argument")
    first = keyed[0]
    result = MVector(comm=first.commk())
    for key in first:
        result[key] = _Deferred(func, tuple(_element(arg, key) for arg in args))
    return result


def _check_memtype(expected: MemoryType, got: MemoryType) -> None:
    if got is not expected:
        raise RuntimeError(f"expected {expected} memory, but got {got}")


def make_mmatrix(matrix_base: BufferBase, memtype: MemoryType = MemoryType.HOST) -> MVector:
    """Wrap the caller's matrix buffers as views, keyed by k-point index."""
    result = MVector(comm=matrix_base.mpicomm())
    for i in range(matrix_base.size()):
        buffer = matrix_base.get(i)
        _check_memtype(memtype, buffer.memtype)
        result[matrix_base.kpoint_index(i)] = buffer.as_array()
    return result


def make_mmvector(vector_base: BufferBase) -> MVector:
    """Copy the caller's vector buffers into real arrays, keyed by k-point index."""
    result = MVector(comm=vector_base.mpicomm())
    for i in range(vector_base.size()):
        buffer = vector_base.get(i)
        if buffer.memtype is MemoryType.DEVICE:
            raise RuntimeError("device memory is not supported")
        if buffer.memtype is MemoryType.HOST:
            result[vector_base.kpoint_index(i)] = np.array(buffer.as_array(), dtype=float)
    return result


def make_mmscalar(scalar_base: BufferBase) -> MVector:
    """Collect the caller's scalars, keyed by k-point index."""
    result = MVector(comm=scalar_base.mpicomm())
    for i in range(scalar_base.size()):
        result[scalar_base.kpoint_index(i)] = scalar_base.get(i)
    return result


def eval_threaded(mv: MVector) -> MVector:
    """Evaluate every entry."""
    return MVector({key: evaluate(value) for key, value in mv.items()}, mv.commk())


def execute(mv: MVector) -> None:
    """Evaluate every entry for its side effects."""
    for value in mv.values():
        evaluate(value)


def _array_sum(values) -> Any:
    return np.sum(np.asarray(values)).item()


def sum_entries(x: MVector) -> MVector:
    """Deferred sum of the elements of each array entry."""
    return tapply(_array_sum, x)


def total(x: MVector, comm: Optional[Communicator] = None) -> Any:
    """Sum of all scalar entries, reduced over the communicator."""
    comm = _resolve_comm(comm, x.commk())
    local = sum((evaluate(value) for value in x.values()), 0)
    return comm.allreduce(local, MpiOp.SUM)


def _multiply(a, b):
    return a * b


def multiply(a: MVector, b: MVector) -> MVector:
    """Deferred entry-wise product."""
    return tapply(_multiply, a, b)


def _do_copy(value):
    if isinstance(value, np.ndarray):
        return np.array(value, copy=True, order="F")
    return value


def copy(x: MVector) -> MVector:
    """Independent copies of all entries."""
    return eval_threaded(tapply(_do_copy, x))


def unzip(v: MVector, commk: Optional[Communicator] = None) -> tuple[MVector, ...]:
    """Turn entries that are tuples into a tuple of MVectors.

    An empty input gives an empty tuple.
    """
    comm = commk if commk is not None else Communicator()
    items = [(key, tuple(evaluate(entry))) for key, entry in v.items()]
    if not items:
        return ()
    arity = len(items[0][1])
    outputs = tuple(MVector(comm=comm) for _ in range(arity))
    for key, entry in items:
        if len(entry) != arity:
            raise ValueError("all entries must be tuples of the same length")
        for out, value in zip(outputs, entry):
            out[key] = value
    return outputs


def _fmt(value: Any) -> str:
    if isinstance(value, np.generic):
        value = value.item()
    return format(value, ".10g")


def print_mvector(vec: MVector, file: Optional[TextIO] = None) -> None:
    """Write every entry, one k-point at a time."""
    out = file if file is not None else sys.stdout
    for key, value in vec.items():
        value = evaluate(value)
        if isinstance(value, np.ndarray):
            out.write(f"kindex: {key[0]}, {key[1]}\n")
            out.write("".join(f"{_fmt(x)} " for x in value.reshape(-1)))
            out.write("\n")
        else:
            out.write(f"kindex ({key[0]}, {key[1]}): {_fmt(value)}\n")