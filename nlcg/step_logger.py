"""Per-iteration records of the minimisation, appended as JSON to a file."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import numpy as np

from nlcg.mvector import MVector
from nlcg.traits import evaluate


def _scalar(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, complex):
        return [value.real, value.imag]
    if isinstance(value, (bool, int, float, str)) or value is None:
        return value
    raise TypeError(f"cannot log value of type {type(value).__name__}")


class StepLogger:
    """Collects values for CG iteration ``i`` and appends them as one JSON object on close."""

    def __init__(self, i: int, fname: str = "nlcg.json", active: bool = True) -> None:
        self.i = i
        self.fname = fname
        self.active = active
        self._closed = False
        self._record: dict[str, Any] = {"type": "cg_iteration", "step": i}

    def log(self, key: str, value: Any) -> None:
        """Record a scalar, a mapping of scalars, or an MVector of 1-d arrays."""
        if not self.active:
            return
        if isinstance(value, MVector):
            entries = self._record.setdefault(key, [])
            if not isinstance(entries, list):
                entries = [entries]
                self._record[key] = entries
            for (ik, ispn), array in value.items():
                values = np.asarray(evaluate(array)).reshape(-1)
                entries.append(
                    {"ik": ik, "ispn": ispn, "value": [_scalar(v) for v in values]}
                )
        elif isinstance(value, Mapping):
            self._record[key] = {str(k): _scalar(v) for k, v in value.items()}
        else:
            self._record[key] = _scalar(value)

    def close(self) -> None:
        """Append the record to the file (once)."""
        if self._closed:
            return
        self._closed = True
        if self.active:
            with open(self.fname, "a", encoding="utf-8") as fout:
                fout.write(json.dumps(self._record, separators=(",", ":")))

    def __enter__(self) -> "StepLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()