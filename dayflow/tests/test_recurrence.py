"""
Tests for recurrence rules.

Tests cover:
1. Due-date evaluation per frequency type
2. Exclusions winning over every type
3. Construction-time validation
"""
import pytest
from datetime import date, timedelta

from dayflow.exceptions import AmbiguousDate, InvalidFrequencyConfig
from dayflow.recurrence import (
    CustomRule, DailyRule, OnceRule, WeeklyRule, is_due_on, parse_recurrence_rule
)


class TestWeeklyRule:
    """Tests for weekly rules"""

    def test_mon_wed_fri(self):
        """Mon/Wed/Fri rule is due on those weekdays only"""
        rule = parse_recurrence_rule({"frequency_type": "weekly", "days_of_week": [1, 3, 5]})
        week = [date(2024, 1, 7) + timedelta(days=i) for i in range(7)]  # Sunday..Saturday

        due = [d for d in week if is_due_on(d, rule)]

        assert due == [date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 12)]
        assert not is_due_on(date(2024, 1, 9), rule)  # Tuesday

    def test_sunday_is_zero(self):
        """Weekday 0 is Sunday"""
        rule = WeeklyRule(days_of_week=[0])

        assert rule.is_due_on(date(2024, 1, 7))
        assert not rule.is_due_on(date(2024, 1, 8))

    def test_every_other_week_from_anchor(self):
        """interval=2 skips every second week counted from the anchor's week"""
        rule = parse_recurrence_rule({
            "frequency_type": "weekly",
            "days_of_week": [1],
            "interval": 2,
            "anchor_date": "2024-01-03",
        })

        assert rule.is_due_on(date(2024, 1, 1))
        assert not rule.is_due_on(date(2024, 1, 8))
        assert rule.is_due_on(date(2024, 1, 15))
        assert not rule.is_due_on(date(2023, 12, 18))  # before the anchor week

    def test_empty_days_rejected(self):
        """Empty days_of_week fails construction instead of never being due"""
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "weekly", "days_of_week": []})

    def test_missing_days_rejected(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "weekly"})

    def test_weekday_out_of_range_rejected(self):
        with pytest.raises(InvalidFrequencyConfig) as exc_info:
            parse_recurrence_rule({"frequency_type": "weekly", "days_of_week": [7]})

        assert exc_info.value.field == "days_of_week"

    def test_interval_without_anchor_rejected(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "weekly", "days_of_week": [1], "interval": 2})

    def test_zero_interval_rejected(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "weekly", "days_of_week": [1], "interval": 0})


class TestCustomRule:
    """Tests for custom rules"""

    def test_specific_dates(self):
        """Due only on the listed dates"""
        rule = parse_recurrence_rule({
            "frequency_type": "custom",
            "specific_dates": ["2024-01-01", "2024-01-15"],
        })

        assert rule.is_due_on(date(2024, 1, 1))
        assert rule.is_due_on(date(2024, 1, 15))
        assert not rule.is_due_on(date(2024, 1, 2))

    def test_every_n_days_from_anchor(self):
        rule = CustomRule(interval=3, anchor_date=date(2024, 1, 1))

        assert rule.is_due_on(date(2024, 1, 1))
        assert not rule.is_due_on(date(2024, 1, 2))
        assert rule.is_due_on(date(2024, 1, 4))
        assert not rule.is_due_on(date(2023, 12, 29))

    def test_neither_dates_nor_interval_rejected(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "custom"})

    def test_interval_only_needs_anchor(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({"frequency_type": "custom", "interval": 2})

    def test_days_of_week_not_allowed(self):
        """Fields of other rule types are rejected"""
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({
                "frequency_type": "custom",
                "specific_dates": ["2024-01-01"],
                "days_of_week": [1],
            })

    def test_impossible_date_is_ambiguous(self):
        with pytest.raises(AmbiguousDate):
            parse_recurrence_rule({"frequency_type": "custom", "specific_dates": ["2024-02-30"]})

    def test_malformed_date_is_ambiguous(self):
        with pytest.raises(AmbiguousDate):
            parse_recurrence_rule({"frequency_type": "custom", "specific_dates": ["01/02/2024"]})


class TestDailyAndOnce:
    """Tests for daily and once rules"""

    def test_daily_due_every_day(self):
        rule = DailyRule()

        assert all(rule.is_due_on(date(2024, 2, 1) + timedelta(days=i)) for i in range(30))

    def test_daily_interval_rejected(self):
        """Every N days belongs to custom rules"""
        with pytest.raises(InvalidFrequencyConfig) as exc_info:
            parse_recurrence_rule({"frequency_type": "daily", "interval": 2})

        assert exc_info.value.field == "interval"

    def test_once_due_on_its_date_only(self):
        rule = OnceRule(specific_dates=["2024-03-01"])

        assert rule.anchor_date == date(2024, 3, 1)
        assert rule.is_due_on(date(2024, 3, 1))
        assert not rule.is_due_on(date(2024, 3, 2))

    def test_once_needs_exactly_one_date(self):
        with pytest.raises(InvalidFrequencyConfig):
            parse_recurrence_rule({
                "frequency_type": "once",
                "specific_dates": ["2024-03-01", "2024-03-02"],
            })

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidFrequencyConfig) as exc_info:
            parse_recurrence_rule({"frequency_type": "monthly"})

        assert exc_info.value.field == "frequency_type"


class TestExcludeDates:
    """Exclusions always win"""

    @pytest.mark.parametrize("options", [
        {"frequency_type": "daily"},
        {"frequency_type": "weekly", "days_of_week": [0, 1, 2, 3, 4, 5, 6]},
        {"frequency_type": "custom", "specific_dates": ["2024-01-10"]},
        {"frequency_type": "custom", "interval": 1, "anchor_date": "2024-01-01"},
        {"frequency_type": "once", "specific_dates": ["2024-01-10"]},
    ])
    def test_excluded_date_never_due(self, options):
        rule = parse_recurrence_rule({**options, "exclude_dates": ["2024-01-10"]})

        assert not rule.is_due_on(date(2024, 1, 10))

    def test_other_dates_unaffected(self):
        rule = parse_recurrence_rule({"frequency_type": "daily", "exclude_dates": ["2024-01-10"]})

        assert rule.is_due_on(date(2024, 1, 11))

    def test_none_values_treated_as_absent(self):
        """Stored rows carry None for unused columns"""
        rule = parse_recurrence_rule({
            "frequency_type": "daily",
            "interval": 1,
            "days_of_week": None,
            "specific_dates": None,
            "exclude_dates": None,
            "anchor_date": None,
        })

        assert isinstance(rule, DailyRule)
