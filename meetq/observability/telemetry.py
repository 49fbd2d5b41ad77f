"""
In-process telemetry for the classification and matching paths.

Nothing is shipped to an external backend: events go to the log, counters and
latency samples stay in memory (readable from /health and from tests).
Request handlers and the reference-data fetch run on worker threads, so all
mutations take the module lock.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("meetq.telemetry")

_LOCK = threading.Lock()
_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}

# Keep memory bounded on long-running workers
_MAX_LATENCY_SAMPLES = 1000


def _normalize_latency_name(metric_name: str) -> str:
    if metric_name.endswith("_ms"):
        return metric_name
    if metric_name.endswith(".latency"):
        return f"{metric_name}_ms"
    return metric_name


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event as sorted key=value pairs.

    Callers keep meeting titles, descriptions and addresses out of fields.

    Side Effects:
        - Writes to logger (info level)
    """
    rendered = " ".join(f"{key}={fields[key]!r}" for key in sorted(fields))
    logger.info("event=%s %s", event_name, rendered)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    with _LOCK:
        return _COUNTERS.get(name, 0)


def get_counters(prefix: str = "") -> dict[str, int]:
    """Snapshot of counters whose name starts with prefix."""
    with _LOCK:
        return {k: v for k, v in sorted(_COUNTERS.items()) if k.startswith(prefix)}


def reset_counters() -> None:
    """
    Clear all counters (useful for tests).

    Side Effects:
        - Clears _COUNTERS dict (in-memory state)
    """
    with _LOCK:
        _COUNTERS.clear()


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time the enclosed block; the sample is kept even when the block raises.

    Side Effects:
        - Appends to _LATENCIES dict (in-memory state)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        normalized = _normalize_latency_name(metric_name)
        logger.debug("timing=%s ms=%.2f", normalized, elapsed_ms)
        with _LOCK:
            samples = _LATENCIES.setdefault(normalized, [])
            samples.append(elapsed_ms)
            if len(samples) > _MAX_LATENCY_SAMPLES:
                del samples[: len(samples) - _MAX_LATENCY_SAMPLES]


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """
    Latency statistics in milliseconds (count, min, max, avg, p95) for a metric.
    """
    normalized = _normalize_latency_name(metric_name)
    with _LOCK:
        samples = sorted(_LATENCIES.get(normalized, []))
    if not samples:
        return {"count": 0, "min": 0.0, "max": 0.0, "avg": 0.0, "p95": 0.0}

    count = len(samples)
    idx = min(int(count * 0.95), count - 1)
    return {
        "count": count,
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / count,
        "p95": samples[idx],
    }


def reset_latencies() -> None:
    """
    Clear all recorded latencies (useful for tests).

    Side Effects:
        - Clears _LATENCIES dict (in-memory state)
    """
    with _LOCK:
        _LATENCIES.clear()
