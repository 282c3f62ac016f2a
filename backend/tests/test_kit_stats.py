from types import SimpleNamespace

import pytest

from services.kit_stats import (
    EntryStats,
    aggregate_entries,
    build_kit_report,
    classify_kit_number,
    count_by_digit_length,
    percentage,
)


@pytest.mark.parametrize("kit_number", [str(n) for n in range(1, 10)])
def test_single_digit_kits_belong_to_first_entry(kit_number):
    assert classify_kit_number(kit_number) == 1


@pytest.mark.parametrize("kit_number", ["10", "45", "80"])
def test_two_digit_kits_up_to_80_belong_to_first_entry(kit_number):
    assert classify_kit_number(kit_number) == 1


@pytest.mark.parametrize("kit_number", ["0", "00", "05", "81", "99"])
def test_out_of_range_short_kits_are_unclassified(kit_number):
    assert classify_kit_number(kit_number) is None


@pytest.mark.parametrize(
    ("kit_number", "entry"),
    [
        ("100", 2),
        ("186", 2),
        ("250", 3),
        ("399", 4),
        ("401", 5),
        ("500", 6),
        ("600", 6),
        ("699", 6),
        ("777", 7),
        ("800", 8),
        ("859", 8),
        ("860", 22),
        ("869", 22),
        ("870", 23),
        ("879", 23),
        ("880", 8),
        ("999", 9),
    ],
)
def test_three_digit_kits(kit_number, entry):
    assert classify_kit_number(kit_number) == entry


def test_three_digit_kit_with_leading_zero_is_unclassified():
    assert classify_kit_number("012") is None


@pytest.mark.parametrize(
    ("kit_number", "entry"),
    [
        ("1025", 10),
        ("1000", 10),
        ("3312", 33),
        ("5699", 56),
        ("10001", 10),
        ("56999", 56),
    ],
)
def test_four_and_five_digit_kits_use_leading_pair(kit_number, entry):
    assert classify_kit_number(kit_number) == entry


@pytest.mark.parametrize("kit_number", ["5700", "0999", "9999", "99999", "123456", "1234567890"])
def test_long_kits_outside_known_entries_are_unclassified(kit_number):
    assert classify_kit_number(kit_number) is None


@pytest.mark.parametrize("kit_number", ["", "   ", "abc", "12a", "-5", "1.5", "١٢", None])
def test_malformed_kits_are_unclassified(kit_number):
    assert classify_kit_number(kit_number) is None


def test_classification_trims_whitespace():
    assert classify_kit_number("  860 \n") == 22


def test_huge_digit_strings_do_not_raise():
    assert classify_kit_number("9" * 10_000) is None


def test_aggregate_end_to_end_scenario():
    registrations = [
        {"kit_number": "5"},
        {"kit_number": "45"},
        {"kit_number": "860"},
        {"kit_number": "186"},
        {"kit_number": ""},
        {"kit_number": "9999"},
    ]

    stats = aggregate_entries(registrations)

    assert stats.entry_counts == {1: 2, 22: 1, 2: 1}
    assert stats.other_counts == {"4-digit-other": 1}
    assert stats.total == 5


def test_aggregate_accepts_objects_and_missing_attributes():
    registrations = [
        SimpleNamespace(kit_number="101"),
        SimpleNamespace(kit_number=None),
        SimpleNamespace(full_name="no kit"),
        {"full_name": "no kit either"},
        SimpleNamespace(kit_number="  "),
        SimpleNamespace(kit_number="abc"),
    ]

    stats = aggregate_entries(registrations)

    assert stats.entry_counts == {2: 1}
    assert stats.other_counts == {"3-digit-other": 1}


def test_aggregate_empty_input():
    stats = aggregate_entries([])

    assert stats == EntryStats()
    assert stats.total == 0


def test_aggregate_total_matches_registrations_with_kit_number():
    kit_numbers = ["1", "81", "860", "5700", "", "x", "12345", "  ", "0", "3312", "87"]
    registrations = [{"kit_number": value} for value in kit_numbers]

    stats = aggregate_entries(registrations)

    with_kit = sum(1 for value in kit_numbers if value.strip())
    assert sum(stats.entry_counts.values()) + sum(stats.other_counts.values()) == with_kit


def test_aggregate_is_idempotent_and_does_not_mutate_input():
    registrations = [{"kit_number": " 45 "}, {"kit_number": "870"}]
    snapshot = [dict(item) for item in registrations]

    first = aggregate_entries(registrations)
    second = aggregate_entries(registrations)

    assert first == second
    assert first is not second
    assert first.entry_counts is not second.entry_counts
    assert registrations == snapshot


def test_aggregate_consumes_generators():
    stats = aggregate_entries({"kit_number": str(n)} for n in (1, 2, 3))

    assert stats.entry_counts == {1: 3}


def test_count_by_digit_length_ignores_classification():
    registrations = [
        {"kit_number": "5"},
        {"kit_number": "99"},
        {"kit_number": " 860 "},
        {"kit_number": "abc"},
        {"kit_number": ""},
        {},
    ]

    assert count_by_digit_length(registrations) == {1: 1, 2: 1, 3: 2}


def test_percentage_rounds_to_one_decimal():
    assert percentage(1, 3) == 33.3
    assert percentage(2, 3) == 66.7
    assert percentage(0, 0) == 0.0


def test_build_kit_report_orders_rows():
    registrations = [
        {"kit_number": kit}
        for kit in ["860", "5", "186", "9999", "1234567890", "2500", "2501", ""]
    ]

    report = build_kit_report(registrations)

    assert report["total"] == 7
    assert [row["key"] for row in report["entries"]] == [1, 2, 22, 25]
    assert [row["key"] for row in report["others"]] == ["10-digit-other", "4-digit-other"]
    assert [row["key"] for row in report["digit_lengths"]] == [1, 3, 4, 10]

    entry_25 = report["entries"][-1]
    assert entry_25 == {"key": 25, "count": 2, "percentage": 28.6}


def test_build_kit_report_empty():
    assert build_kit_report([]) == {"total": 0, "entries": [], "others": [], "digit_lengths": []}
