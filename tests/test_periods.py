"""Tests for period-token to timestamp conversion."""

from __future__ import annotations

import itertools

import pytest

from umami_client import periods
from umami_client.errors import ValidationError
from umami_client.periods import (
    ACCEPTED_PERIODS,
    DAY_PERIODS,
    HOUR_PERIODS,
    MONTH_PERIODS,
    WEEK_PERIODS,
    PeriodClass,
    TimeRange,
    classify_period,
    convert_period_to_time,
)

NOW_MS = 1_700_000_000_000


class TestConvertPeriodToTime:
    @pytest.mark.parametrize(
        ("tokens", "width_ms"),
        [
            (HOUR_PERIODS, 3_600_000),
            (DAY_PERIODS, 86_400_000),
            (WEEK_PERIODS, 604_800_000),
            (MONTH_PERIODS, 2_678_400_000),
        ],
    )
    def test_width_matches_class(self, tokens, width_ms):
        for token in tokens:
            window = convert_period_to_time(token)
            assert window.end_at - window.start_at == width_ms, token

    def test_pinned_now(self):
        window = convert_period_to_time("7d", now_ms=NOW_MS)
        assert window == TimeRange(start_at=NOW_MS - 604_800_000, end_at=NOW_MS)

    def test_default_is_24h(self):
        assert convert_period_to_time(now_ms=NOW_MS) == convert_period_to_time("24h", now_ms=NOW_MS)

    def test_default_width_without_pinned_now(self):
        window = convert_period_to_time()
        assert window.end_at - window.start_at == 86_400_000

    def test_samples_clock_once(self, monkeypatch):
        """A clock that moves between reads must not widen the interval."""
        ticks = itertools.count(start=NOW_MS * 1_000_000, step=5_000_000)
        monkeypatch.setattr(periods.time, "time_ns", lambda: next(ticks))
        window = convert_period_to_time("1h")
        assert window.end_at - window.start_at == 3_600_000
        assert window.end_at == NOW_MS

    def test_end_is_current_time(self, monkeypatch):
        monkeypatch.setattr(periods.time, "time_ns", lambda: NOW_MS * 1_000_000 + 999)
        assert convert_period_to_time("1d").end_at == NOW_MS

    def test_unknown_token_lists_every_accepted_value(self):
        with pytest.raises(ValidationError) as exc_info:
            convert_period_to_time("bogus")
        message = str(exc_info.value)
        assert "bogus" in message
        assert len(ACCEPTED_PERIODS) == 16
        for token in ACCEPTED_PERIODS:
            assert token in message

    def test_unknown_token_is_a_value_error(self):
        with pytest.raises(ValueError):
            convert_period_to_time("2weeks")

    def test_lookup_is_exact(self):
        with pytest.raises(ValidationError):
            convert_period_to_time("24H")
        with pytest.raises(ValidationError):
            convert_period_to_time(" 24h")


class TestClassifyPeriod:
    def test_each_list_maps_to_its_class(self):
        assert {classify_period(t) for t in HOUR_PERIODS} == {PeriodClass.HOUR}
        assert {classify_period(t) for t in DAY_PERIODS} == {PeriodClass.DAY}
        assert {classify_period(t) for t in WEEK_PERIODS} == {PeriodClass.WEEK}
        assert {classify_period(t) for t in MONTH_PERIODS} == {PeriodClass.MONTH}

    def test_month_is_31_days(self):
        assert PeriodClass.MONTH.duration_ms == 31 * 24 * 60 * 60 * 1000


class TestTimeRange:
    def test_params(self):
        window = TimeRange(start_at=1, end_at=2)
        assert window.as_params() == {"startAt": 1, "endAt": 2}

    def test_legacy_params(self):
        window = TimeRange(start_at=1, end_at=2)
        assert window.as_params(legacy=True) == {"start_at": 1, "end_at": 2}
