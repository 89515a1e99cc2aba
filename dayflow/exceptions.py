"""
Custom exceptions for the ritual core.
Provides specific exception types for validation failures and ledger races.
"""


class DayflowException(Exception):
    """Base exception for the ritual core"""
    pass


class InvalidFrequencyConfig(DayflowException):
    """Raised when a recurrence rule has the wrong field combination for its type"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid frequency config for {field}: {message}")


class AmbiguousDate(DayflowException):
    """Raised when a date is not YYYY-MM-DD or is not a real calendar date"""
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Ambiguous date: {value!r}. Expected YYYY-MM-DD")


class InvalidTimeFormatException(DayflowException):
    """Raised when time format is invalid"""
    def __init__(self, time_str: object):
        self.time_str = time_str
        super().__init__(f"Invalid time format: {time_str}. Expected HH:MM")


class UnknownTimezone(DayflowException):
    """Raised when a time zone name cannot be resolved"""
    def __init__(self, timezone: str):
        self.timezone = timezone
        super().__init__(f"Unknown time zone: {timezone}")


class DuplicateCompletionWrite(DayflowException):
    """Raised when two writes race for the same (ritual_id, date) ledger slot"""
    def __init__(self, ritual_id: str, completed_date):
        self.ritual_id = ritual_id
        self.completed_date = completed_date
        super().__init__(
            f"Concurrent completion write for ritual {ritual_id} on {completed_date}"
        )


class ConflictingMeasurementType(DayflowException):
    """Raised when one exercise is used with two measurement types in a ritual"""
    def __init__(self, exercise_id: str, first_type: str, second_type: str):
        self.exercise_id = exercise_id
        self.first_type = first_type
        self.second_type = second_type
        super().__init__(
            f"Exercise {exercise_id} is measured as both {first_type} and {second_type}"
        )


class InvalidStepDefinition(DayflowException):
    """Raised when step fields do not match the step type"""
    def __init__(self, step_type: str, message: str):
        self.step_type = step_type
        super().__init__(f"Invalid {step_type} step: {message}")


class UnorderedHistory(DayflowException):
    """Raised when a sequential fold receives dates out of order"""
    def __init__(self, previous, current):
        self.previous = previous
        self.current = current
        super().__init__(
            f"History must be strictly ascending by date: {current} follows {previous}"
        )


class RitualNotFoundException(DayflowException):
    """Raised when a ritual is not found"""
    def __init__(self, ritual_id: str):
        self.ritual_id = ritual_id
        super().__init__(f"Ritual with ID {ritual_id} not found")


class InvalidStepCompletion(DayflowException):
    """Raised when a step completion fraction is outside 0.0-1.0"""
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid step completion: {value!r}. Expected a fraction between 0.0 and 1.0")
