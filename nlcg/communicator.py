"""Single-process communicator with the collective operations the solver uses."""

from __future__ import annotations

import enum
import operator
from dataclasses import dataclass
from functools import reduce
from typing import Any, Sequence


class MpiOp(enum.Enum):
    """Reduction operations."""

    SUM = "sum"
    MAX = "max"
    MIN = "min"


_REDUCERS = {
    MpiOp.SUM: operator.add,
    MpiOp.MAX: max,
    MpiOp.MIN: min,
}


class CommKind(enum.Enum):
    """Which communicator a handle refers to."""

    SELF = "self"
    WORLD = "world"
    NULL = "null"


@dataclass(frozen=True)
class Communicator:
    """Handle to a communicator in a single-process run.

    Both ``SELF`` and ``WORLD`` hold exactly one rank; ``NULL`` holds none and
    every operation on it is an error.
    """

    kind: CommKind = CommKind.SELF

    def _check(self) -> None:
        if self.kind is CommKind.NULL:
            raise RuntimeError("operation on a null communicator")

    def size(self) -> int:
        """Number of ranks."""
        self._check()
        return 1

    def rank(self) -> int:
        """Rank of the calling process."""
        self._check()
        return 0

    def allgather(self, values: Sequence[Any]) -> list[list[Any]]:
        """Gather every rank's values; entry ``r`` holds rank ``r``'s list."""
        self._check()
        gathered: list[list[Any]] = [[] for _ in range(self.size())]
        gathered[self.rank()] = list(values)
        return gathered

    def allreduce(self, value, op):
        """Reduce ``value`` over all ranks with ``op``."""
        if not isinstance(op, MpiOp):
            raise ValueError(f"invalid MPI_Op given: {op!r}")
        contributions = [group[0] for group in self.allgather([value])]
        return reduce(_REDUCERS[op], contributions)

    def barrier(self) -> None:
        """Synchronise all ranks."""
        self._check()

    def __lt__(self, other: "Communicator") -> bool:
        return self.size() < other.size()

    def __gt__(self, other: "Communicator") -> bool:
        return self.size() > other.size()