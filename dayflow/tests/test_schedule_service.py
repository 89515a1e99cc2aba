"""
Tests for schedule resolution.

Tests cover:
1. Due filtering and ordering
2. Per-day overrides
3. Invalid rules excluded without aborting the day
4. Manual reorder and retime
5. Stored schedule with conflict annotation
"""
import pytest
from datetime import date, datetime, timezone

from dayflow.exceptions import InvalidTimeFormatException
from dayflow.schemas import RitualOverride, ScheduledRitual
from dayflow.services.ritual_service import RitualService
from dayflow.services.schedule_service import (
    ScheduleService, move_occurrence, resolve_schedule, retime_occurrence
)
from dayflow.tests.conftest import create_ritual

DAILY = {"frequency_type": "daily"}


class TestResolveSchedule:
    """Tests for the pure resolver"""

    def test_orders_by_time_then_unscheduled(self, today):
        rituals = [
            ScheduledRitual(ritual_id="late", rule=DAILY, default_time="21:00"),
            ScheduledRitual(ritual_id="free", rule=DAILY),
            ScheduledRitual(ritual_id="early", rule=DAILY, default_time="06:30"),
        ]

        result = resolve_schedule(rituals, today, "UTC")

        assert [o.ritual_id for o in result.occurrences] == ["early", "late", "free"]
        assert all(o.is_due and o.date == today for o in result.occurrences)

    def test_same_time_keeps_source_order(self, today):
        rituals = [
            ScheduledRitual(ritual_id="b", rule=DAILY, default_time="08:00"),
            ScheduledRitual(ritual_id="a", rule=DAILY, default_time="08:00"),
        ]

        result = resolve_schedule(rituals, today, "UTC")

        assert [o.ritual_id for o in result.occurrences] == ["b", "a"]

    def test_not_due_rituals_left_out(self, today):
        rituals = [
            ("weekend", {"frequency_type": "weekly", "days_of_week": [0, 6]}),
            ("daily", DAILY),
        ]

        result = resolve_schedule(rituals, today, "UTC")

        assert [o.ritual_id for o in result.occurrences] == ["daily"]

    def test_invalid_rule_rejected_others_resolved(self, today):
        """One broken rule does not abort the rest of the day"""
        rituals = [
            ("broken", {"frequency_type": "weekly", "days_of_week": []}),
            ("bad-date", {"frequency_type": "custom", "specific_dates": ["2024-02-30"]}),
            ("daily", DAILY),
        ]

        result = resolve_schedule(rituals, today, "UTC")

        assert [o.ritual_id for o in result.occurrences] == ["daily"]
        assert [(r.ritual_id, r.error) for r in result.rejected] == [
            ("broken", "InvalidFrequencyConfig"),
            ("bad-date", "AmbiguousDate"),
        ]

    def test_malformed_override_rejected_others_resolved(self, today):
        """A bad override time blocks only its own ritual"""
        rituals = [
            ("bad-time", DAILY, {"date": today.isoformat(), "scheduled_time": "25:00"}),
            ("daily", DAILY),
        ]

        result = resolve_schedule(rituals, today, "UTC")

        assert [o.ritual_id for o in result.occurrences] == ["daily"]
        assert [(r.ritual_id, r.error) for r in result.rejected] == [("bad-time", "ValidationError")]

    def test_target_normalized_in_timezone(self):
        """A UTC instant late on the 10th resolves the 11th in Tokyo"""
        rituals = [("once", {"frequency_type": "once", "specific_dates": ["2024-01-11"]})]
        when = datetime(2024, 1, 10, 20, 0, tzinfo=timezone.utc)

        tokyo = resolve_schedule(rituals, when, "Asia/Tokyo")
        utc = resolve_schedule(rituals, when, "UTC")

        assert tokyo.date == date(2024, 1, 11)
        assert [o.ritual_id for o in tokyo.occurrences] == ["once"]
        assert utc.occurrences == []


class TestOverrides:
    """Tests for per-day overrides"""

    def test_removed_override_hides_ritual(self, today):
        rituals = [("r1", DAILY, RitualOverride(date=today, removed=True))]

        assert resolve_schedule(rituals, today, "UTC").occurrences == []

    def test_time_override_replaces_default(self, today):
        rituals = [ScheduledRitual(
            ritual_id="r1", rule=DAILY, default_time="07:00",
            override=RitualOverride(date=today, scheduled_time="18:00")
        )]

        result = resolve_schedule(rituals, today, "UTC")

        assert result.occurrences[0].scheduled_time == "18:00"

    def test_override_for_other_day_ignored(self, today, yesterday):
        rituals = [("r1", DAILY, RitualOverride(date=yesterday, removed=True))]

        assert len(resolve_schedule(rituals, today, "UTC").occurrences) == 1

    def test_override_cannot_make_ritual_due(self, today):
        rituals = [(
            "sundays",
            {"frequency_type": "weekly", "days_of_week": [0]},
            RitualOverride(date=today, scheduled_time="09:00"),
        )]

        assert resolve_schedule(rituals, today, "UTC").occurrences == []


class TestManualEdits:
    """Tests for reorder and retime"""

    @pytest.fixture
    def occurrences(self, today):
        rituals = [
            ("a", DAILY), ("b", DAILY), ("c", DAILY),
        ]
        return resolve_schedule(rituals, today, "UTC").occurrences

    def test_move_renumbers(self, occurrences):
        moved = move_occurrence(occurrences, 2, 0)

        assert [o.ritual_id for o in moved] == ["c", "a", "b"]
        assert [o.position for o in moved] == [0, 1, 2]

    def test_retime_recomputes_conflicts(self, occurrences):
        first = retime_occurrence(occurrences, "a", "08:00")
        second = retime_occurrence(first, "b", "08:00")

        by_id = {o.ritual_id: o for o in second}
        assert by_id["a"].conflict_group == frozenset({"b"})
        assert by_id["b"].conflict_group == frozenset({"a"})
        assert by_id["c"].conflict_group is None

        cleared = {o.ritual_id: o for o in retime_occurrence(second, "b", None)}
        assert cleared["a"].conflict_group is None

    def test_retime_rejects_bad_time(self, occurrences):
        with pytest.raises(InvalidTimeFormatException):
            retime_occurrence(occurrences, "a", "8am")


class TestScheduleService:
    """Tests for the stored schedule"""

    def test_day_schedule_with_conflicts(self, db_session, today):
        first = create_ritual(db_session, name="Stretch", default_time="08:00")
        second = create_ritual(db_session, name="Journal", default_time="08:00")
        third = create_ritual(db_session, name="Read", default_time="09:00")

        result = ScheduleService(db_session).get_day_schedule("alice", today)

        by_id = {o.ritual_id: o for o in result.occurrences}
        assert set(by_id) == {first.id, second.id, third.id}
        assert by_id[first.id].conflict_group == frozenset({second.id})
        assert by_id[third.id].conflict_group is None
        assert result.timezone == "UTC"

    def test_override_and_deactivation(self, db_session, today):
        moved = create_ritual(db_session, name="Walk", default_time="07:00")
        removed = create_ritual(db_session, name="Meditate")
        inactive = create_ritual(db_session, name="Old habit")
        service = RitualService(db_session)
        service.set_override(moved.id, today, scheduled_time="19:00")
        service.set_override(removed.id, today.isoformat(), removed=True)
        service.deactivate_ritual(inactive.id)

        result = ScheduleService(db_session).get_day_schedule("alice", today)

        assert [(o.ritual_id, o.scheduled_time) for o in result.occurrences] == [(moved.id, "19:00")]

        service.clear_override(removed.id, today)
        result = ScheduleService(db_session).get_day_schedule("alice", today)
        assert {o.ritual_id for o in result.occurrences} == {moved.id, removed.id}

    def test_rituals_created_later_not_scheduled(self, db_session, today):
        create_ritual(db_session, created_on=date(2024, 2, 1))

        assert ScheduleService(db_session).get_day_schedule("alice", today).occurrences == []

    def test_weekly_anchored_at_creation(self, db_session):
        """Interval weeks count from the creation date when no anchor is given"""
        create_ritual(
            db_session,
            created_on=date(2024, 1, 1),
            frequency={"frequency_type": "weekly", "days_of_week": [1], "interval": 2},
        )
        service = ScheduleService(db_session)

        due_days = [
            day for day in (date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15))
            if service.get_day_schedule("alice", day).occurrences
        ]

        assert due_days == [date(2024, 1, 1), date(2024, 1, 15)]
