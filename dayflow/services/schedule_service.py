"""
Schedule resolution service.
Decides which rituals are due on a day, applies per-day overrides and orders
the result by scheduled time.
"""
import logging
from datetime import date
from typing import Iterable, List, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session

from dayflow.config import DEFAULT_USER_TIMEZONE, DAY_START_TIME
from dayflow.exceptions import AmbiguousDate, InvalidFrequencyConfig
from dayflow.recurrence import parse_recurrence_rule
from dayflow.repositories.profile_repository import ProfileRepository
from dayflow.repositories.ritual_repository import RitualRepository
from dayflow.schemas import (
    RejectedRitual, RitualOccurrence, ScheduledRitual, ScheduleResult
)
from dayflow.services.conflict_service import ConflictDetector
from dayflow.services.date_service import DateService, DateLike

logger = logging.getLogger("dayflow.schedule")


def order_occurrences(occurrences: Iterable[RitualOccurrence]) -> List[RitualOccurrence]:
    """Scheduled first by time, unscheduled last; ties keep source order"""
    return sorted(
        occurrences,
        key=lambda occurrence: (
            occurrence.scheduled_time is None,
            occurrence.scheduled_time or "",
            occurrence.position
        )
    )


class ScheduleResolver:
    """
    Pure resolver: every input is passed in, nothing is read from the clock.
    """

    def __init__(self, day_start_time: Optional[str] = None):
        self.day_start_time = day_start_time
        self.date_service = DateService()

    @staticmethod
    def _as_scheduled(item) -> ScheduledRitual:
        """Accept ScheduledRitual or a (ritual_id, rule[, override]) tuple"""
        if isinstance(item, ScheduledRitual):
            return item
        ritual_id, rule, *rest = item
        return ScheduledRitual(ritual_id=ritual_id, rule=rule, override=rest[0] if rest else None)

    @staticmethod
    def _item_id(item) -> str:
        if isinstance(item, ScheduledRitual):
            return item.ritual_id
        return str(item[0])

    def resolve(self, rituals: Iterable, when: DateLike, timezone: str) -> ScheduleResult:
        """
        Resolve the due occurrences of one day.

        The target is normalized to a calendar date once, up front, so every
        ritual is evaluated against the same day.

        Args:
            rituals: ScheduledRitual items (or tuples) in source order
            when: Date, datetime or ISO date string
            timezone: IANA time zone name

        Returns:
            ScheduleResult with ordered occurrences and rejected rituals
        """
        target = self.date_service.get_effective_date(when, timezone, self.day_start_time)

        occurrences = []
        rejected = []
        for position, item in enumerate(rituals):
            try:
                ritual = self._as_scheduled(item)
                rule = parse_recurrence_rule(ritual.rule)
            except (InvalidFrequencyConfig, AmbiguousDate, ValidationError) as e:
                ritual_id = self._item_id(item)
                logger.warning(f"Excluding ritual {ritual_id} from {target}: {e}")
                rejected.append(RejectedRitual(
                    ritual_id=ritual_id,
                    error=type(e).__name__,
                    message=str(e)
                ))
                continue

            if not rule.is_due_on(target):
                continue

            scheduled_time = ritual.default_time
            override = ritual.override
            if override is not None and override.date == target:
                if override.removed:
                    logger.debug(f"Ritual {ritual.ritual_id} removed from {target} by override")
                    continue
                if override.scheduled_time:
                    scheduled_time = override.scheduled_time

            occurrences.append(RitualOccurrence(
                ritual_id=ritual.ritual_id,
                date=target,
                scheduled_time=scheduled_time,
                position=position
            ))

        return ScheduleResult(
            date=target,
            timezone=timezone,
            occurrences=order_occurrences(occurrences),
            rejected=rejected
        )


def resolve_schedule(
    rituals: Iterable,
    when: DateLike,
    timezone: str,
    day_start_time: Optional[str] = None
) -> ScheduleResult:
    return ScheduleResolver(day_start_time).resolve(rituals, when, timezone)


def move_occurrence(
    occurrences: List[RitualOccurrence],
    from_index: int,
    to_index: int
) -> List[RitualOccurrence]:
    """
    Move one occurrence to a new index (manual reorder) and recompute conflicts.

    Positions are renumbered to the new manual order.
    """
    reordered = list(occurrences)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    renumbered = [
        occurrence.model_copy(update={"position": index})
        for index, occurrence in enumerate(reordered)
    ]
    return ConflictDetector.annotate(renumbered)


def retime_occurrence(
    occurrences: List[RitualOccurrence],
    ritual_id: str,
    scheduled_time: Optional[str]
) -> List[RitualOccurrence]:
    """
    Set (or clear, with None) the time of one occurrence and recompute conflicts.

    Raises:
        InvalidTimeFormatException: If scheduled_time is not HH:MM
    """
    if scheduled_time is not None:
        DateService.parse_time(scheduled_time)
    updated = [
        occurrence.model_copy(update={"scheduled_time": scheduled_time})
        if occurrence.ritual_id == ritual_id else occurrence
        for occurrence in occurrences
    ]
    return ConflictDetector.annotate(updated)


class ScheduleService:
    """Service for a user's stored schedule"""

    def __init__(self, db: Session, day_start_time: Optional[str] = DAY_START_TIME):
        self.db = db
        self.ritual_repo = RitualRepository()
        self.profile_repo = ProfileRepository()
        self.date_service = DateService()
        self.resolver = ScheduleResolver(day_start_time)

    def get_timezone(self, user_id: str) -> str:
        """Stored time zone of a user, or the configured default"""
        profile = self.profile_repo.get(self.db, user_id)
        return profile.timezone if profile and profile.timezone else DEFAULT_USER_TIMEZONE

    def get_target_date(self, when: DateLike, timezone: str) -> date:
        return self.date_service.get_effective_date(when, timezone, self.resolver.day_start_time)

    def get_day_schedule(
        self,
        user_id: str,
        when: DateLike,
        timezone: Optional[str] = None
    ) -> ScheduleResult:
        """
        Resolve a user's day and annotate time conflicts.

        Args:
            user_id: Owner of the rituals
            when: Date, datetime or ISO date string supplied by the caller
            timezone: IANA time zone; defaults to the user's stored one

        Returns:
            ScheduleResult with conflict groups filled in
        """
        timezone = timezone or self.get_timezone(user_id)
        target = self.get_target_date(when, timezone)
        rituals = self.ritual_repo.get_rituals_with_rules(self.db, user_id, target)

        result = self.resolver.resolve(rituals, target, timezone)
        result.occurrences = ConflictDetector.annotate(result.occurrences)

        logger.info(
            f"Resolved {len(result.occurrences)} rituals for {user_id} on {target} "
            f"({len(result.rejected)} rejected)"
        )
        return result
