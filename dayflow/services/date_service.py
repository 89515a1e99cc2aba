"""
Date calculation and manipulation service.
Handles calendar-date normalization in a time zone, day start time logic,
and the ISO date / HH:MM parsing used by recurrence rules.
"""
import re
from datetime import datetime, timedelta, date, timezone as dt_timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dayflow.constants import DATE_FORMAT, DATE_PATTERN, TIME_PATTERN, DAYS_IN_WEEK
from dayflow.exceptions import AmbiguousDate, InvalidTimeFormatException, UnknownTimezone

_DATE_RE = re.compile(DATE_PATTERN)
_TIME_RE = re.compile(TIME_PATTERN)

DateLike = Union[date, datetime, str]


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def parse_iso_date(value: DateLike) -> date:
        """
        Parse a YYYY-MM-DD string (or pass a date through).

        Raises:
            AmbiguousDate: If the string is malformed or names an impossible date
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not _DATE_RE.match(value):
            raise AmbiguousDate(value)
        try:
            return datetime.strptime(value, DATE_FORMAT).date()
        except ValueError:
            # e.g. 2024-02-30
            raise AmbiguousDate(value)

    @staticmethod
    def parse_time(time_str: str) -> tuple[int, int]:
        """
        Parse time string into hour and minute.

        Args:
            time_str: Time string in "HH:MM" format

        Returns:
            Tuple of (hour, minute)

        Raises:
            InvalidTimeFormatException: If time string is invalid
        """
        if not isinstance(time_str, str) or not _TIME_RE.match(time_str):
            raise InvalidTimeFormatException(time_str)
        hour, minute = time_str.split(":")
        return int(hour), int(minute)

    @staticmethod
    def get_zone(timezone: str) -> ZoneInfo:
        """Resolve an IANA time zone name"""
        try:
            return ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise UnknownTimezone(timezone)

    @staticmethod
    def get_effective_date(
        when: DateLike,
        timezone: str,
        day_start_time: Optional[str] = None
    ) -> date:
        """
        Get the calendar date of `when` in the given time zone.

        Plain dates and ISO strings are already calendar dates and pass through.
        Naive datetimes are read as UTC. If day_start_time is set and the local
        time is before it, the effective date is still yesterday.

        Example: with day_start_time = "04:00", 02:30 local time on the 5th
        belongs to the 4th because the user hasn't started their new day yet.

        Args:
            when: Date, datetime or ISO date string
            timezone: IANA time zone name
            day_start_time: Optional "HH:MM" day boundary

        Returns:
            Effective calendar date
        """
        zone = DateService.get_zone(timezone)

        if not isinstance(when, datetime):
            return DateService.parse_iso_date(when)

        if when.tzinfo is None:
            when = when.replace(tzinfo=dt_timezone.utc)
        local = when.astimezone(zone)
        today = local.date()

        if not day_start_time:
            return today

        day_start_hour, day_start_minute = DateService.parse_time(day_start_time)
        current_minutes = local.hour * 60 + local.minute
        start_minutes = day_start_hour * 60 + day_start_minute

        if current_minutes < start_minutes:
            return today - timedelta(days=1)

        return today

    @staticmethod
    def sunday_weekday(target: date) -> int:
        """Weekday with Sunday=0 ... Saturday=6"""
        return (target.weekday() + 1) % DAYS_IN_WEEK

    @staticmethod
    def week_start(target: date) -> date:
        """Sunday that starts the week containing target"""
        return target - timedelta(days=DateService.sunday_weekday(target))

    @staticmethod
    def weeks_between(anchor: date, target: date) -> int:
        """Whole Sunday-based weeks from anchor's week to target's week"""
        return (DateService.week_start(target) - DateService.week_start(anchor)).days // DAYS_IN_WEEK

    @staticmethod
    def get_day_range(target_date: date, timezone: str = "UTC") -> tuple[datetime, datetime]:
        """
        Get aware datetime range for a full local day (midnight to midnight).

        Args:
            target_date: Date to get range for
            timezone: IANA time zone name

        Returns:
            Tuple of (day_start, day_end) datetimes
        """
        zone = DateService.get_zone(timezone)
        day_start = datetime.combine(target_date, datetime.min.time(), tzinfo=zone)
        day_end = datetime.combine(target_date + timedelta(days=1), datetime.min.time(), tzinfo=zone)
        return day_start, day_end
