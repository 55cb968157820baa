from datetime import date, datetime, timezone

import pytest

from services.date_resolver import find_date_candidates, is_date_span, parse_datetime, resolve_date_range
from services.rule_detector import detect_intent
from services.timeframe import to_iso

UTC = timezone.utc


def _iso_range(rng):
    return to_iso(rng[0]), to_iso(rng[1])


def test_relative_phrases(reference):
    assert _iso_range(resolve_date_range("yesterday", reference)) == (
        "2025-02-14T00:00:00.000Z",
        "2025-02-14T23:59:59.999Z",
    )
    assert _iso_range(resolve_date_range("this week", reference)) == (
        "2025-02-10T00:00:00.000Z",
        "2025-02-16T23:59:59.999Z",
    )
    assert _iso_range(resolve_date_range("last week", reference)) == (
        "2025-02-03T00:00:00.000Z",
        "2025-02-09T23:59:59.999Z",
    )
    assert _iso_range(resolve_date_range("Last  Month", reference)) == (
        "2025-01-01T00:00:00.000Z",
        "2025-01-31T23:59:59.999Z",
    )
    assert _iso_range(resolve_date_range("last quarter", reference)) == (
        "2024-10-01T00:00:00.000Z",
        "2024-12-31T23:59:59.999Z",
    )
    assert _iso_range(resolve_date_range("last year", reference)) == (
        "2024-01-01T00:00:00.000Z",
        "2024-12-31T23:59:59.999Z",
    )


def test_last_n_days_runs_through_reference(reference):
    start, end = resolve_date_range("past 7 days", reference)
    assert to_iso(start) == "2025-02-08T00:00:00.000Z"
    assert end == reference


def test_unknown_phrase():
    assert resolve_date_range("someday", datetime(2025, 2, 15, tzinfo=UTC)) is None


def test_candidates_are_ordered_by_position(reference):
    candidates = find_date_candidates("this month vs last month", reference)
    assert [c.text for c in candidates] == ["this month", "last month"]


def test_iso_date_candidate(reference):
    (candidate,) = find_date_candidates("coffee on 2025-01-05", reference)
    assert to_iso(candidate.start) == "2025-01-05T00:00:00.000Z"
    assert to_iso(candidate.end) == "2025-01-05T23:59:59.999Z"


def test_parse_datetime_falls_back_to_reference(reference):
    assert parse_datetime("???", reference) == reference
    assert parse_datetime(None, reference) == reference
    assert to_iso(parse_datetime("2025-02-01", reference)) == "2025-02-01T00:00:00.000Z"


# ---------------------------------------------------------------------
# Month and weekday words in ordinary English
# ---------------------------------------------------------------------

EVERYDAY_WORD_MESSAGES = [
    "Spent $20 at Target, may return it",
    "Paid $15 for a sun hat",
    "Spent $9 on a mar bar",
]


@pytest.mark.parametrize("text", EVERYDAY_WORD_MESSAGES)
def test_everyday_words_are_not_dates(text, reference):
    assert find_date_candidates(text, reference) == []


@pytest.mark.parametrize("text", EVERYDAY_WORD_MESSAGES)
def test_transaction_without_a_date_stays_undated(text, reference):
    detection = detect_intent(text, find_date_candidates(text, reference))

    assert detection.intent.kind == "transaction"
    assert detection.intent.entities.transactionDate is None
    assert "transaction:date" not in detection.rules


@pytest.mark.parametrize(
    "text, span",
    [
        ("paid on May 3", "May 3"),
        ("paid 3rd of may", "may"),
        ("coffee last Sat", "Sat"),
        ("rent for mar 2024", "mar 2024"),
        ("lunch on Wed", "Wed"),
    ],
)
def test_ambiguous_words_count_beside_a_day_or_date_word(text, span):
    assert is_date_span(text, span, text.index(span))


@pytest.mark.parametrize(
    "text, span",
    [
        ("may return it", "may"),
        ("a sun hat", "sun"),
        ("on a mar bar", "mar"),
    ],
)
def test_ambiguous_words_alone_are_rejected(text, span):
    assert not is_date_span(text, span, text.index(span))


def test_unambiguous_month_names_need_no_anchor():
    text = "groceries in february"
    assert is_date_span(text, "february", text.index("february"))
    assert is_date_span("refund 03/14", "03/14", len("refund "))


def test_amount_is_not_read_as_the_day(reference):
    candidates = find_date_candidates("Spent 45 on May 3", reference)

    assert candidates
    assert candidates[0].start.date() == date(2024, 5, 3)
