from datetime import datetime, timezone

import pytest

from core.date_grain import DateGrain
from services.timeframe import parse_instant, previous_period, snap_to_grain, to_iso

UTC = timezone.utc


def test_iso_rendering_is_utc_with_milliseconds():
    assert to_iso(datetime(2025, 2, 14, tzinfo=UTC)) == "2025-02-14T00:00:00.000Z"
    assert to_iso(datetime(2025, 2, 14, 23, 59, 59, 999000)) == "2025-02-14T23:59:59.999Z"


def test_parse_instant_rejects_garbage():
    assert parse_instant("???") is None
    assert parse_instant("") is None
    assert parse_instant("2025-02-14T10:00:00+02:00") == datetime(2025, 2, 14, 8, tzinfo=UTC)


@pytest.mark.parametrize(
    "grain, start, end",
    [
        (DateGrain.DAY, "2025-02-14T00:00:00.000Z", "2025-02-14T23:59:59.999Z"),
        (DateGrain.WEEK, "2025-02-10T00:00:00.000Z", "2025-02-16T23:59:59.999Z"),
        (DateGrain.MONTH, "2025-02-01T00:00:00.000Z", "2025-02-28T23:59:59.999Z"),
        (DateGrain.QUARTER, "2025-01-01T00:00:00.000Z", "2025-03-31T23:59:59.999Z"),
        (DateGrain.YEAR, "2025-01-01T00:00:00.000Z", "2025-12-31T23:59:59.999Z"),
    ],
)
def test_snap_single_instant(grain, start, end):
    instant = datetime(2025, 2, 14, 9, 45, tzinfo=UTC)
    snapped = snap_to_grain(instant, instant, grain)
    assert (to_iso(snapped[0]), to_iso(snapped[1])) == (start, end)


def test_month_snap_uses_end_month_for_end_bound():
    start, end = snap_to_grain(
        datetime(2024, 1, 20, tzinfo=UTC),
        datetime(2024, 2, 3, tzinfo=UTC),
        DateGrain.MONTH,
    )
    assert to_iso(start) == "2024-01-01T00:00:00.000Z"
    assert to_iso(end) == "2024-02-29T23:59:59.999Z"


def test_quarter_snap_handles_31st():
    start, end = snap_to_grain(
        datetime(2025, 8, 31, tzinfo=UTC),
        datetime(2025, 8, 31, tzinfo=UTC),
        DateGrain.QUARTER,
    )
    assert to_iso(start) == "2025-07-01T00:00:00.000Z"
    assert to_iso(end) == "2025-09-30T23:59:59.999Z"


def test_custom_grain_is_untouched():
    a = datetime(2025, 2, 3, 4, 5, 6, tzinfo=UTC)
    b = datetime(2025, 2, 9, 1, 2, 3, tzinfo=UTC)
    assert DateGrain.CUSTOM.is_custom()
    assert not DateGrain.WEEK.is_custom()
    assert snap_to_grain(a, b, DateGrain.CUSTOM) == (a, b)
    assert snap_to_grain(a, b, "custom") == (a, b)


def test_previous_period_has_same_length_and_ends_just_before_start():
    start = datetime(2025, 2, 1, tzinfo=UTC)
    end = datetime(2025, 2, 28, 23, 59, 59, 999000, tzinfo=UTC)

    prev_start, prev_end = previous_period(start, end)

    assert to_iso(prev_end) == "2025-01-31T23:59:59.999Z"
    assert prev_end - prev_start == end - start
