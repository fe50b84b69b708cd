"""Elapsed-time diagnostics for hot paths.

Serverless platforms bill on CPU time, so every cached lookup and index
build reports how long it took.  ``timed`` is a small context manager that
logs a ``timing`` event with the label and elapsed milliseconds on exit.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from notionsite.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class Timer:
    """Measures wall-clock time since construction using ``perf_counter``."""

    def __init__(self, label: str) -> None:
        self.label = label
        self._start = time.perf_counter()

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def end(self) -> float:
        """Log the elapsed time and return it in milliseconds."""
        duration = self.elapsed_ms()
        _logger.debug("timing", label=self.label, elapsed_ms=round(duration, 2))
        return duration


@contextmanager
def timed(label: str) -> Iterator[Timer]:
    timer = Timer(label)
    try:
        yield timer
    finally:
        timer.end()
