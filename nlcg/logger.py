"""Prefix-aware logger writing to standard output on rank 0 and to an optional file."""

from __future__ import annotations

import sys
import threading
from functools import lru_cache
from typing import Any, Optional, TextIO

from nlcg.communicator import CommKind, Communicator


class Logger:
    """Writes messages prefixed by a stack of tags ("tag::") to stdout and a file."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._prefixes: list[str] = []
        self._stream: Optional[TextIO] = None
        self._detach_stdout = False
        self._pid = Communicator(CommKind.WORLD).rank()

    def attach_file(self, prefix: str = "out", suffix: str = ".log") -> None:
        """Write to ``<prefix><rank><suffix>`` as well."""
        self._pid = Communicator(CommKind.WORLD).rank()
        self._stream = open(f"{prefix}{self._pid}{suffix}", "w", encoding="utf-8")

    def attach_file_master(self, fname: str = "nlcg.out") -> None:
        """Write to ``fname`` as well; only rank 0 opens the file."""
        self._pid = Communicator(CommKind.WORLD).rank()
        if self._pid == 0:
            self._stream = open(fname, "w", encoding="utf-8")

    def write(self, output: Any) -> "Logger":
        """Write ``output`` preceded by the current prefixes."""
        with self._lock:
            text = "".join(f"{prefix}::" for prefix in self._prefixes) + str(output)
            if self._stream is not None:
                self._stream.write(text)
            if not self._detach_stdout and self._pid == 0:
                sys.stdout.write(text)
        return self

    def __lshift__(self, output: Any) -> "Logger":
        return self.write(output)

    def to_stdout(self) -> "Logger":
        """A logger sharing prefixes and file that always writes to stdout."""
        log = Logger()
        log._prefixes = list(self._prefixes)
        log._stream = self._stream
        log._detach_stdout = False
        return log

    def push_prefix(self, tag: str) -> None:
        with self._lock:
            self._prefixes.append(tag)

    def pop_prefix(self) -> None:
        with self._lock:
            if not self._prefixes:
                raise IndexError("no prefix to pop")
            self._prefixes.pop()

    def clear_prefix(self) -> None:
        with self._lock:
            self._prefixes.clear()

    def flush(self) -> None:
        """Flush the attached file, if any."""
        if self._stream is not None:
            with self._lock:
                self._stream.flush()

    def detach_stdout(self) -> None:
        self._detach_stdout = True

    def attach_stdout(self) -> None:
        self._detach_stdout = False

    def is_detached(self) -> bool:
        return self._detach_stdout


@lru_cache(maxsize=None)
def get_logger() -> Logger:
    """The process-wide logger."""
    return Logger()