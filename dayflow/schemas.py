from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from typing import Any, Dict, FrozenSet, List, Optional

from dayflow.constants import TIME_PATTERN


# Schedule schemas
class RitualOverride(BaseModel):
    """Persisted per-day edit of one ritual: removed from the day, or retimed"""
    model_config = ConfigDict(frozen=True)

    date: date
    removed: bool = False
    scheduled_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)


class ScheduledRitual(BaseModel):
    """
    A ritual as handed to the schedule resolver.

    `rule` is either a built recurrence rule or the raw options mapping read
    from storage; raw options are validated during resolution.
    """
    ritual_id: str
    rule: Any
    default_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    override: Optional[RitualOverride] = None


class RitualOccurrence(BaseModel):
    model_config = ConfigDict(frozen=True)

    ritual_id: str
    date: date
    scheduled_time: Optional[str] = None
    is_due: bool = True
    conflict_group: Optional[FrozenSet[str]] = None  # other rituals sharing the slot
    position: int = 0  # index in the source list


class RejectedRitual(BaseModel):
    ritual_id: str
    error: str
    message: str


class ScheduleResult(BaseModel):
    date: date
    timezone: str
    occurrences: List[RitualOccurrence] = []
    rejected: List[RejectedRitual] = []


class ConflictGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheduled_time: str
    ritual_ids: tuple[str, ...]


# Completion schemas
class CompletionEntry(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    ritual_id: str
    date: date
    completed: bool
    step_completion: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    details: Optional[Dict[str, Any]] = None


class CompletionRequest(BaseModel):
    ritual_id: str
    date: date
    completed: bool = True
    step_completion: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    details: Optional[Dict[str, Any]] = None


class BatchItemResult(BaseModel):
    ritual_id: str
    date: date
    success: bool
    entry: Optional[CompletionEntry] = None
    error: Optional[str] = None


class DayOutcome(BaseModel):
    """One calendar day of a ritual set: completed iff every due ritual was"""
    model_config = ConfigDict(frozen=True)

    date: date
    completed: bool


class StreakResult(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    completion_rate: int = Field(default=0, ge=0, le=100)


# Proof score schemas
class ProofScoreState(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(default=1.0, ge=0.0)
    current_streak: int = Field(default=0, ge=0)
    last_scored_date: Optional[date] = None


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    score: float
    current_streak: int
    joined_on: date


class RankedEntry(LeaderboardEntry):
    rank: int
    tier: str


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    proof_score: float
    current_streak: int
    joined_on: date
    last_scored_date: Optional[date] = None
    created_at: datetime
