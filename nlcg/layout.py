"""Block layouts of distributed matrices and the map that pairs them with a communicator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from nlcg.communicator import Communicator


@dataclass(frozen=True)
class Block:
    """A block starting at row ``x``, column ``y`` of extent ``nrows`` x ``ncols``."""

    x: int
    y: int
    nrows: int
    ncols: int


class BlockLayout:
    """An arbitrary collection of blocks."""

    def __init__(self, blocks: Optional[Iterable[Block]] = None) -> None:
        self._blocks: list[Block] = list(blocks) if blocks is not None else []
        self._nrows = -1
        self._ncols = -1

    @property
    def blocks(self) -> list[Block]:
        return list(self._blocks)

    def nrows(self) -> int:
        raise RuntimeError("invalid")

    def ncols(self) -> int:
        raise RuntimeError("invalid")


class SlabLayoutV(BlockLayout):
    """Vertical slab layout: blocks stacked on top of each other, all full width."""

    def __init__(self, blocks: Optional[Iterable[Block]] = None, ncols: int = -1) -> None:
        super().__init__(blocks)
        if blocks is None:
            return
        if ncols == -1:
            if not self._blocks:
                raise ValueError("invalid layout: no blocks to take the width from")
            ncols = self._blocks[0].ncols
        self._ncols = ncols
        self._nrows = 0
        for block in self._blocks:
            self._nrows += block.nrows
            if block.ncols != self._ncols or block.y != 0:
                raise ValueError("invalid layout")

    def nrows(self) -> int:
        """Local number of rows."""
        return self._nrows

    def ncols(self) -> int:
        """Local number of columns."""
        return self._ncols


@dataclass
class Map:
    """A layout together with the communicator it is distributed over."""

    comm: Communicator = field(default_factory=Communicator)
    layout: BlockLayout = field(default_factory=SlabLayoutV)

    def nrows(self) -> int:
        """Global number of rows."""
        return self.layout.nrows()

    def ncols(self) -> int:
        """Global number of columns."""
        return self.layout.ncols()

    def is_local(self) -> bool:
        """True when the data lives on a single rank."""
        return self.comm.size() == 1