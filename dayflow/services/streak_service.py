"""
Streak calculation service.
Derives current/longest streaks and completion rate from a completion history.
"""
import math
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from dayflow.schemas import DayOutcome, StreakResult


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (83.5 -> 84)"""
    return int(math.floor(value + 0.5))


class StreakCalculator:
    """Pure streak arithmetic over objects with `date` and `completed`"""

    @staticmethod
    def normalize(history: Iterable) -> List[Tuple[date, bool]]:
        """
        Collapse duplicate dates (last entry wins) and sort ascending.

        Makes the result independent of input order.
        """
        by_date = {}
        for entry in history:
            by_date[entry.date] = bool(entry.completed)
        return sorted(by_date.items())

    def compute(self, history: Iterable, as_of: Optional[date] = None) -> StreakResult:
        """
        Compute streaks for one ritual (or one ritual set, see aggregate_day_outcomes).

        A missing date counts as a miss, so the history should be dense over
        the evaluated window.

        Args:
            history: Entries with `date` and `completed`
            as_of: Optional evaluation day; later entries are ignored and a
                newest entry older than yesterday means no current streak

        Returns:
            StreakResult (all zeros for an empty history)
        """
        days = self.normalize(history)
        if as_of is not None:
            days = [(day, completed) for day, completed in days if day <= as_of]

        if not days:
            return StreakResult()

        completed_count = sum(1 for _, completed in days if completed)

        return StreakResult(
            current_streak=self._current_streak(days, as_of),
            longest_streak=self._longest_streak(days),
            completion_rate=round_half_up(100 * completed_count / len(days))
        )

    @staticmethod
    def _current_streak(days: List[Tuple[date, bool]], as_of: Optional[date]) -> int:
        """Walk back from the newest entry until a miss or a gap"""
        if as_of is not None and days[-1][0] < as_of - timedelta(days=1):
            return 0

        streak = 0
        later_day = None
        for day, completed in reversed(days):
            if not completed:
                break
            if later_day is not None and (later_day - day).days != 1:
                break
            streak += 1
            later_day = day
        return streak

    @staticmethod
    def _longest_streak(days: List[Tuple[date, bool]]) -> int:
        """Single forward scan; a miss or a gap resets the run"""
        longest = 0
        run = 0
        previous_day = None
        for day, completed in days:
            if not completed:
                run = 0
            elif previous_day is not None and (day - previous_day).days == 1:
                run += 1
            else:
                run = 1
            longest = max(longest, run)
            previous_day = day
        return longest

    @staticmethod
    def aggregate_day_outcomes(entries: Iterable) -> List[DayOutcome]:
        """
        Collapse entries of several rituals into one outcome per day.

        A day is completed only if every ritual entry of that day is completed.
        A repeated (ritual_id, date) keeps the last entry.
        """
        by_key = {}
        for entry in entries:
            by_key[(getattr(entry, "ritual_id", None), entry.date)] = bool(entry.completed)

        by_day = {}
        for (_, day), completed in by_key.items():
            by_day[day] = by_day.get(day, True) and completed

        return [DayOutcome(date=day, completed=completed) for day, completed in sorted(by_day.items())]


def compute_streak(history: Iterable, as_of: Optional[date] = None) -> StreakResult:
    return StreakCalculator().compute(history, as_of)


def aggregate_day_outcomes(entries: Iterable) -> List[DayOutcome]:
    return StreakCalculator.aggregate_day_outcomes(entries)
