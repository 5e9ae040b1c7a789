"""Wall-clock timer."""

from __future__ import annotations

import time
from typing import Optional


class Timer:
    """Measures elapsed seconds between ``start`` and ``stop``."""

    def __init__(self) -> None:
        self._t: Optional[float] = None

    def start(self) -> None:
        self._t = time.perf_counter()

    def stop(self) -> float:
        """Seconds since the last ``start``."""
        if self._t is None:
            raise RuntimeError("timer was not started")
        return time.perf_counter() - self._t