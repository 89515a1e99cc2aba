"""
Step definitions and ritual definitions.

Each step type only accepts the target fields that apply to it. Workout steps
carry exercises whose sets must match the exercise's measurement type, and a
ritual may not measure the same exercise two different ways.
"""
from typing import Annotated, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dayflow.constants import (
    MEASUREMENT_WEIGHT_REPS, MEASUREMENT_REPS, MEASUREMENT_TIME, MEASUREMENT_DISTANCE_TIME,
    RITUAL_CATEGORIES, TIME_PATTERN,
)
from dayflow.exceptions import ConflictingMeasurementType, InvalidStepDefinition
from dayflow.recurrence import RecurrenceRule

MeasurementType = Literal["weight_reps", "reps", "time", "distance_time"]

# Which set targets each measurement type requires; all others must be empty
_SET_TARGETS = {
    MEASUREMENT_WEIGHT_REPS: {"target_weight_kg", "target_reps"},
    MEASUREMENT_REPS: {"target_reps"},
    MEASUREMENT_TIME: {"target_seconds"},
    MEASUREMENT_DISTANCE_TIME: {"target_seconds", "target_distance_m"},
}
_ALL_SET_TARGETS = {"target_weight_kg", "target_reps", "target_seconds", "target_distance_m"}


class WorkoutSet(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    set_number: int = Field(..., ge=1)
    target_weight_kg: Optional[float] = Field(None, gt=0)
    target_reps: Optional[int] = Field(None, ge=1)
    target_seconds: Optional[float] = Field(None, gt=0)
    target_distance_m: Optional[float] = Field(None, gt=0)


class WorkoutExercise(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    exercise_id: str = Field(..., min_length=1)
    exercise_measurement_type: MeasurementType
    order_index: int = 0
    workout_sets: List[WorkoutSet]

    @model_validator(mode="after")
    def check_sets_match_measurement(self):
        if not self.workout_sets:
            raise InvalidStepDefinition("workout", "an exercise needs at least one set")
        required = _SET_TARGETS[self.exercise_measurement_type]
        for workout_set in self.workout_sets:
            present = {
                name for name in _ALL_SET_TARGETS
                if getattr(workout_set, name) is not None
            }
            if present != required:
                raise InvalidStepDefinition(
                    "workout",
                    f"set {workout_set.set_number} of {self.exercise_id} must set exactly "
                    f"{sorted(required)} for {self.exercise_measurement_type}"
                )
        return self


class _BaseStep(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    order_index: int = 0
    name: str = Field(..., min_length=1)
    is_required: bool = True


class BooleanStep(_BaseStep):
    type: Literal["boolean"] = "boolean"


class QnaStep(_BaseStep):
    type: Literal["qna"] = "qna"


class CounterStep(_BaseStep):
    type: Literal["counter"] = "counter"
    target_count_value: float
    target_count_unit: str = Field(..., min_length=1)


class TimerStep(_BaseStep):
    type: Literal["timer"] = "timer"
    target_seconds: float = Field(..., gt=0)


class ScaleStep(_BaseStep):
    type: Literal["scale"] = "scale"
    min_value: float
    max_value: float

    @model_validator(mode="after")
    def check_range(self):
        if self.min_value >= self.max_value:
            raise InvalidStepDefinition("scale", "min_value must be below max_value")
        return self


class WorkoutStep(_BaseStep):
    type: Literal["workout"] = "workout"
    workout_exercises: List[WorkoutExercise]

    @field_validator("workout_exercises")
    @classmethod
    def check_not_empty(cls, value):
        if not value:
            raise InvalidStepDefinition("workout", "at least one workout exercise is required")
        return value


StepDefinition = Annotated[
    Union[BooleanStep, QnaStep, CounterStep, TimerStep, ScaleStep, WorkoutStep],
    Field(discriminator="type"),
]


def check_measurement_types(steps: Iterable[StepDefinition]) -> None:
    """
    Ensure every exercise keeps one measurement type across the whole ritual.

    Raises:
        ConflictingMeasurementType: On the first exercise measured two ways
    """
    seen: dict[str, str] = {}
    for step in steps:
        for exercise in getattr(step, "workout_exercises", None) or []:
            previous = seen.get(exercise.exercise_id)
            if previous and previous != exercise.exercise_measurement_type:
                raise ConflictingMeasurementType(
                    exercise.exercise_id, previous, exercise.exercise_measurement_type
                )
            seen[exercise.exercise_id] = exercise.exercise_measurement_type


def check_unique_order(steps: Iterable[StepDefinition]) -> None:
    """Each step needs its own order_index; completion fractions are keyed by it"""
    indexes = [step.order_index for step in steps]
    if len(set(indexes)) != len(indexes):
        raise InvalidStepDefinition("ritual", f"step order_index values must be unique, got {indexes}")


class RitualDefinition(BaseModel):
    """A ritual as created by the user: metadata, frequency and ordered steps"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Literal[RITUAL_CATEGORIES] = "other"
    location: Optional[str] = None
    gear: List[str] = []
    is_public: bool = False
    is_active: bool = True
    default_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    frequency: RecurrenceRule
    step_definitions: List[StepDefinition]

    @field_validator("step_definitions", mode="before")
    @classmethod
    def default_order_index(cls, value):
        """Steps without an order_index take their list position"""
        if not isinstance(value, list):
            return value
        return [
            {**step, "order_index": position}
            if isinstance(step, dict) and "order_index" not in step else step
            for position, step in enumerate(value)
        ]

    @model_validator(mode="after")
    def check_steps(self):
        if not self.step_definitions:
            raise InvalidStepDefinition("ritual", "at least one step definition is required")
        check_unique_order(self.step_definitions)
        check_measurement_types(self.step_definitions)
        return self


def required_step_fraction(steps: List[StepDefinition], completed_indexes: Iterable[int]) -> float:
    """
    Fraction of required steps that were completed.

    Args:
        steps: Step definitions in order
        completed_indexes: order_index values of completed steps

    Returns:
        0.0-1.0; 1.0 when the ritual has no required steps

    Raises:
        InvalidStepDefinition: If two steps share an order_index
    """
    check_unique_order(steps)
    required = {step.order_index for step in steps if step.is_required}
    if not required:
        return 1.0
    done = required.intersection(completed_indexes)
    return len(done) / len(required)
