"""Progress sinks notified at step boundaries."""

from __future__ import annotations

import sys
from typing import TextIO


class ProgressReporter:
    """No-op sink; subclasses render progress somewhere visible."""

    def start(self, label: str) -> None:
        pass

    def succeed(self, label: str) -> None:
        pass

    def fail(self, label: str) -> None:
        pass


class ConsoleProgress(ProgressReporter):
    """Write one line per notification to stderr, keeping stdout for the report."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stderr

    def _emit(self, marker: str, label: str) -> None:
        self.stream.write(f"{marker} {label}\n")
        self.stream.flush()

    def start(self, label: str) -> None:
        self._emit("-", label)

    def succeed(self, label: str) -> None:
        self._emit("✔", label)

    def fail(self, label: str) -> None:
        self._emit("✖", label)
