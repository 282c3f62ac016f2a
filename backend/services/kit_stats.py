"""Kit-number classification and the distribution reports built on it.

Every attendee picks a numeric *kit number* when registering. The leading
digits of that number encode the attendee's *entry* (intake); the admin
dashboard groups registrations by entry and by digit count. Nothing here
touches the database: the functions accept any iterable of registrations
(ORM rows, dicts, pydantic models) and return fresh structures on each call.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

_DIGITS = re.compile(r"[0-9]+")

# Three-digit kit numbers whose first two digits map to their own entry.
# Checked before the single leading-digit table below.
_THREE_DIGIT_PREFIX_ENTRIES = {"86": 22, "87": 23}
_THREE_DIGIT_LEADING_ENTRIES = {
    "1": 2,
    "2": 3,
    "3": 4,
    "4": 5,
    "5": 6,
    "6": 6,
    "7": 7,
    "8": 8,
    "9": 9,
}
_LONG_PREFIX_MIN = 10
_LONG_PREFIX_MAX = 56


def normalize_kit_number(value: Any) -> str:
    """Return the trimmed text form of a kit number (``""`` for missing values)."""

    if value is None:
        return ""
    return str(value).strip()


def kit_number_of(registration: Any) -> str:
    """Read ``kit_number`` from a mapping or an object; absent means empty."""

    if isinstance(registration, Mapping):
        raw = registration.get("kit_number")
    else:
        raw = getattr(registration, "kit_number", None)
    return normalize_kit_number(raw)


def is_valid_kit_number(value: Any) -> bool:
    return bool(_DIGITS.fullmatch(normalize_kit_number(value)))


def classify_kit_number(kit_number: Any) -> int | None:
    """Map a kit number to its entry number, or ``None`` when no rule applies.

    Malformed input (blank, non-digit) is not an error and simply yields
    ``None``.
    """

    digits = normalize_kit_number(kit_number)
    if not _DIGITS.fullmatch(digits):
        return None

    length = len(digits)

    if length == 1:
        return 1 if 1 <= int(digits) <= 9 else None
    if length == 2:
        return 1 if 10 <= int(digits) <= 80 else None
    if length == 3:
        entry = _THREE_DIGIT_PREFIX_ENTRIES.get(digits[:2])
        if entry is not None:
            return entry
        return _THREE_DIGIT_LEADING_ENTRIES.get(digits[0])
    if length in (4, 5):
        prefix = int(digits[:2])
        if _LONG_PREFIX_MIN <= prefix <= _LONG_PREFIX_MAX:
            return prefix
    return None


def other_bucket_key(length: int) -> str:
    return f"{length}-digit-other"


@dataclass(slots=True)
class EntryStats:
    """Counts per entry number plus the fallback buckets keyed by digit length."""

    entry_counts: dict[int, int] = field(default_factory=dict)
    other_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.entry_counts.values()) + sum(self.other_counts.values())


def aggregate_entries(registrations: Iterable[Any]) -> EntryStats:
    """Group registrations by entry number.

    Registrations without a kit number are skipped. Unclassifiable kit
    numbers land in ``other_counts`` under ``"<n>-digit-other"``.
    """

    entries: Counter[int] = Counter()
    others: Counter[str] = Counter()

    for registration in registrations:
        kit_number = kit_number_of(registration)
        if not kit_number:
            continue
        entry = classify_kit_number(kit_number)
        if entry is None:
            others[other_bucket_key(len(kit_number))] += 1
        else:
            entries[entry] += 1

    return EntryStats(entry_counts=dict(entries), other_counts=dict(others))


def count_by_digit_length(registrations: Iterable[Any]) -> dict[int, int]:
    """Count registrations by the length of their trimmed kit number."""

    counts: Counter[int] = Counter()
    for registration in registrations:
        kit_number = kit_number_of(registration)
        if kit_number:
            counts[len(kit_number)] += 1
    return dict(counts)


def percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 1)


def _rows(items: Iterable[tuple[Any, int]], total: int) -> list[dict[str, Any]]:
    return [
        {"key": key, "count": count, "percentage": percentage(count, total)}
        for key, count in items
    ]


def build_kit_report(registrations: Iterable[Any]) -> dict[str, Any]:
    """Build the JSON payload behind the kit statistics dashboard.

    ``entries`` are ordered by entry number, ``others`` by bucket key and
    ``digit_lengths`` by length. Percentages are relative to the number of
    registrations that have a kit number and are rounded to one decimal.
    """

    snapshot = list(registrations)
    stats = aggregate_entries(snapshot)
    digit_lengths = count_by_digit_length(snapshot)
    total = stats.total

    return {
        "total": total,
        "entries": _rows(sorted(stats.entry_counts.items()), total),
        "others": _rows(sorted(stats.other_counts.items()), total),
        "digit_lengths": _rows(sorted(digit_lengths.items()), total),
    }


__all__ = [
    "EntryStats",
    "aggregate_entries",
    "build_kit_report",
    "classify_kit_number",
    "count_by_digit_length",
    "is_valid_kit_number",
    "kit_number_of",
    "normalize_kit_number",
    "other_bucket_key",
    "percentage",
]
