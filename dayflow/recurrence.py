"""
Recurrence rules.

A ritual's frequency is one of four rule types, discriminated by
``frequency_type``. Each type only carries the fields that make sense for it,
and every invalid combination fails at construction with
``InvalidFrequencyConfig`` so a rule that exists can always be evaluated.

Weekdays are Sunday-based (0 = Sunday ... 6 = Saturday).
"""
from datetime import date
from typing import Annotated, Any, FrozenSet, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic import field_validator, model_validator

from dayflow.constants import (
    FREQUENCY_ONCE, FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_CUSTOM,
    FREQUENCY_TYPES, SUNDAY, SATURDAY,
)
from dayflow.exceptions import InvalidFrequencyConfig
from dayflow.services.date_service import DateService


def _parse_dates(field: str, value: Any) -> list[date]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise InvalidFrequencyConfig(field, "must be a list of YYYY-MM-DD dates")
    return [DateService.parse_iso_date(item) for item in value]


def _require_positive_interval(interval: int) -> None:
    if interval < 1:
        raise InvalidFrequencyConfig("interval", f"must be a positive integer, got {interval}")


class _BaseRule(BaseModel):
    """Fields shared by every rule type"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    exclude_dates: FrozenSet[date] = frozenset()

    @field_validator("exclude_dates", mode="before")
    @classmethod
    def _parse_exclude_dates(cls, value):
        return frozenset(_parse_dates("exclude_dates", value))

    def is_due_on(self, target: date) -> bool:
        """Exclusions always win, then the type-specific match"""
        if target in self.exclude_dates:
            return False
        return self._matches(target)

    def _matches(self, target: date) -> bool:
        raise NotImplementedError

    def to_options(self) -> dict:
        """Plain JSON-friendly options, lists sorted"""
        options = self.model_dump(mode="json", exclude_none=True)
        for key, value in options.items():
            if isinstance(value, list):
                options[key] = sorted(value)
        return options


class OnceRule(_BaseRule):
    """Due on exactly one date, stored as the only specific_dates entry"""
    frequency_type: Literal["once"] = FREQUENCY_ONCE
    interval: int = 1
    specific_dates: Tuple[date, ...]

    @field_validator("specific_dates", mode="before")
    @classmethod
    def _parse_specific_dates(cls, value):
        return tuple(sorted(set(_parse_dates("specific_dates", value))))

    @model_validator(mode="after")
    def _check(self):
        if self.interval != 1:
            raise InvalidFrequencyConfig("interval", "once rules must use interval 1")
        if len(self.specific_dates) != 1:
            raise InvalidFrequencyConfig(
                "specific_dates", "once rules need exactly one date"
            )
        return self

    @property
    def anchor_date(self) -> date:
        return self.specific_dates[0]

    def _matches(self, target: date) -> bool:
        return target == self.anchor_date


class DailyRule(_BaseRule):
    """Due every calendar date"""
    frequency_type: Literal["daily"] = FREQUENCY_DAILY
    interval: int = 1

    @model_validator(mode="after")
    def _check(self):
        # "every N days" is a custom rule, not a daily one
        if self.interval != 1:
            raise InvalidFrequencyConfig(
                "interval", "daily rules must use interval 1; use a custom rule for every N days"
            )
        return self

    def _matches(self, target: date) -> bool:
        return True


class WeeklyRule(_BaseRule):
    """Due on the listed weekdays, every interval-th week counted from anchor_date"""
    frequency_type: Literal["weekly"] = FREQUENCY_WEEKLY
    interval: int = 1
    days_of_week: FrozenSet[int]
    anchor_date: Optional[date] = None

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _parse_days(cls, value):
        if value is None or isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise InvalidFrequencyConfig("days_of_week", "must be a list of weekdays 0-6")
        days = set()
        for day in value:
            if isinstance(day, bool) or not isinstance(day, int) or not SUNDAY <= day <= SATURDAY:
                raise InvalidFrequencyConfig(
                    "days_of_week", f"weekday must be an integer 0-6 (Sunday=0), got {day!r}"
                )
            days.add(day)
        return frozenset(days)

    @field_validator("anchor_date", mode="before")
    @classmethod
    def _parse_anchor(cls, value):
        return None if value is None else DateService.parse_iso_date(value)

    @model_validator(mode="after")
    def _check(self):
        _require_positive_interval(self.interval)
        if not self.days_of_week:
            raise InvalidFrequencyConfig("days_of_week", "weekly rules need at least one weekday")
        if self.interval > 1 and self.anchor_date is None:
            raise InvalidFrequencyConfig(
                "anchor_date", "weekly rules with interval > 1 need an anchor date"
            )
        return self

    def _matches(self, target: date) -> bool:
        if DateService.sunday_weekday(target) not in self.days_of_week:
            return False
        if self.interval == 1:
            return True
        weeks = DateService.weeks_between(self.anchor_date, target)
        return weeks >= 0 and weeks % self.interval == 0


class CustomRule(_BaseRule):
    """
    Due on an explicit list of dates, or every `interval` days from
    anchor_date when no list is given.
    """
    frequency_type: Literal["custom"] = FREQUENCY_CUSTOM
    interval: Optional[int] = None
    specific_dates: Tuple[date, ...] = ()
    anchor_date: Optional[date] = None

    @field_validator("specific_dates", mode="before")
    @classmethod
    def _parse_specific_dates(cls, value):
        return tuple(sorted(set(_parse_dates("specific_dates", value))))

    @field_validator("anchor_date", mode="before")
    @classmethod
    def _parse_anchor(cls, value):
        return None if value is None else DateService.parse_iso_date(value)

    @model_validator(mode="after")
    def _check(self):
        if self.interval is not None:
            _require_positive_interval(self.interval)
        if not self.specific_dates:
            if self.interval is None:
                raise InvalidFrequencyConfig(
                    "specific_dates", "custom rules need specific dates or an interval"
                )
            if self.anchor_date is None:
                raise InvalidFrequencyConfig(
                    "anchor_date", "interval-only custom rules need an anchor date"
                )
        return self

    def _matches(self, target: date) -> bool:
        if self.specific_dates:
            return target in self.specific_dates
        days = (target - self.anchor_date).days
        return days >= 0 and days % self.interval == 0


RecurrenceRule = Annotated[
    Union[OnceRule, DailyRule, WeeklyRule, CustomRule],
    Field(discriminator="frequency_type"),
]

_rule_adapter = TypeAdapter(RecurrenceRule)


def parse_recurrence_rule(options: Union[Mapping[str, Any], _BaseRule]) -> RecurrenceRule:
    """
    Build a rule from raw options (a request body or a persisted row).

    Keys whose value is None are treated as absent.

    Raises:
        InvalidFrequencyConfig: On any invalid field or combination
        AmbiguousDate: On a malformed or impossible date
    """
    if isinstance(options, _BaseRule):
        return options
    if not isinstance(options, Mapping):
        raise InvalidFrequencyConfig("frequency", "expected a mapping of rule options")

    cleaned = {key: value for key, value in options.items() if value is not None}
    frequency_type = cleaned.get("frequency_type")
    if frequency_type not in FREQUENCY_TYPES:
        raise InvalidFrequencyConfig(
            "frequency_type", f"unknown frequency type {frequency_type!r}"
        )

    try:
        return _rule_adapter.validate_python(cleaned)
    except ValidationError as e:
        error = e.errors()[0]
        location = [str(part) for part in error["loc"]]
        if location and location[0] == frequency_type:
            location = location[1:]
        raise InvalidFrequencyConfig(".".join(location) or "frequency", error["msg"]) from e


def is_due_on(target: date, rule: RecurrenceRule) -> bool:
    """Whether `rule` produces an occurrence on `target`"""
    return rule.is_due_on(target)
