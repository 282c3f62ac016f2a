"""Prometheus business metrics helpers for KitReg."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator

from prometheus_client import Counter, Histogram

_REGISTRATION_SUBMISSIONS = Counter(
    "kitreg_registration_submissions_total",
    "Number of registration form submissions processed by the application.",
    ("outcome",),
)

_REGISTRATION_ENTRIES = Counter(
    "kitreg_registrations_by_entry_total",
    "Successful registrations by derived entry number ('other' when unclassified).",
    ("entry",),
)

_REGISTRATION_DURATION = Histogram(
    "kitreg_registration_duration_seconds",
    "Time spent handling registration submissions end-to-end.",
    ("outcome",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)


@contextmanager
def registration_metrics() -> Iterator[Callable[..., None]]:
    """Track duration and outcome for a registration submission.

    The context manager yields a callback ``mark(outcome, entry=None)``.
    Handlers call it with ``"success"`` (and the derived entry number) or a
    rejection reason such as ``"closed"`` or ``"duplicate"``. When the
    callback is never invoked the submission is recorded as ``"error"``.
    """

    start = time.perf_counter()
    state: dict[str, object] = {"outcome": "error", "entry": None}

    def mark(outcome: str, entry: int | None = None) -> None:
        state["outcome"] = outcome
        state["entry"] = entry

    try:
        yield mark
    finally:
        outcome = str(state["outcome"])
        duration = max(0.0, time.perf_counter() - start)
        _REGISTRATION_DURATION.labels(outcome=outcome).observe(duration)
        _REGISTRATION_SUBMISSIONS.labels(outcome=outcome).inc()
        if outcome == "success":
            entry = state["entry"]
            _REGISTRATION_ENTRIES.labels(entry=str(entry) if entry is not None else "other").inc()


__all__ = ["registration_metrics"]
