"""
Timing helpers.

Compilation, synthesis and file-write durations go into log lines as
the ``seconds`` field:

    with timeit("compile") as t:
        markup = compile_markup(text, settings)
    verbose(_LOG, "compiled", seconds=round(t.seconds, 4))
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """A measured duration, with optional metadata such as char counts."""
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager measuring wall-clock time with perf_counter().

    ``timing`` is set on exit, also when the block raises.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0, meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, or -1.0 while the block is still running."""
        return self.timing.seconds if self.timing else -1.0
