from datetime import datetime, timezone

import pytest

from skills.hiring_funnel.months import month_range, month_window, months_to_date, parse_month, resolve_windows


def test_month_window_bounds():
    window = month_window(2024, 2)
    assert window.key == "2024-02"
    assert window.label == "Feb"
    assert window.start_iso == "2024-02-01T00:00:00.000Z"
    assert window.end_iso == "2024-02-29T23:59:59.999Z"


def test_months_to_date_is_newest_first():
    windows = months_to_date(datetime(2024, 4, 15, tzinfo=timezone.utc))
    assert [w.key for w in windows] == ["2024-04", "2024-03", "2024-02", "2024-01"]


def test_month_range_crosses_year_boundary():
    windows = month_range("2023-11", "2024-02")
    assert [w.label for w in windows] == ["Feb", "Jan", "Dec", "Nov"]


def test_month_range_rejects_reversed_range():
    with pytest.raises(ValueError):
        month_range("2024-03", "2024-01")


@pytest.mark.parametrize("raw", ["2024", "2024-13", "24-01", ""])
def test_parse_month_rejects_bad_input(raw):
    with pytest.raises(ValueError):
        parse_month(raw)


def test_resolve_windows_requires_both_bounds():
    with pytest.raises(ValueError):
        resolve_windows("2024-01", None)
    now = datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert [w.key for w in resolve_windows(now=now)] == ["2024-02", "2024-01"]
    assert [w.key for w in resolve_windows("2024-01", "2024-01")] == ["2024-01"]
