"""Timed spans for the slow paths (LLM calls, generation job)."""

import time
from contextlib import contextmanager

from mealshare.logging import get_logger

logger = get_logger(__name__)

_TIMING_PREFIX = "[TIMING]"


def format_duration(ms: int) -> str:
    """12500 -> '12.5s', 750 -> '750ms'."""
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms}ms"


@contextmanager
def time_span(name: str, **extra: object):
    """Log elapsed time for the wrapped block, with extra key=value fields.

    Yields a dict that the block may add fields to; they are logged on exit.
    """
    fields: dict[str, object] = dict(extra)
    start = time.perf_counter()
    try:
        yield fields
    finally:
        elapsed = int((time.perf_counter() - start) * 1000)
        parts = [f"elapsed_ms={elapsed}", f"({format_duration(elapsed)})"]
        parts += [f"{k}={v}" for k, v in fields.items()]
        logger.info("%s %s %s", _TIMING_PREFIX, name, " ".join(parts))
