from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, Date, ForeignKey, UniqueConstraint, CheckConstraint
)
from datetime import datetime, date
from uuid import uuid4

from dayflow.database import Base


def _new_id() -> str:
    return uuid4().hex


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, unique=True, index=True)
    joined_on = Column(Date, nullable=False, default=date.today)

    # Proof score state, advanced once per closed day
    proof_score = Column(Float, nullable=False, default=1.0)
    current_streak = Column(Integer, nullable=False, default=0)
    last_scored_date = Column(Date, nullable=True)  # Last day folded into the score

    timezone = Column(String, nullable=False, default="UTC")
    created_at = Column(DateTime, default=datetime.utcnow)


class Ritual(Base):
    __tablename__ = "rituals"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, default="other")
    location = Column(String, nullable=True)
    gear = Column(String, nullable=False, default="[]")  # JSON array of gear names
    is_public = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    default_time = Column(String, nullable=True)  # HH:MM, None = unscheduled
    step_definitions = Column(String, nullable=False, default="[]")  # JSON array of step definitions
    created_at = Column(DateTime, default=datetime.utcnow)


class RitualFrequency(Base):
    __tablename__ = "ritual_frequencies"

    id = Column(Integer, primary_key=True, index=True)
    ritual_id = Column(String, ForeignKey("rituals.id", ondelete="CASCADE"), unique=True, nullable=False)
    frequency_type = Column(String, nullable=False)  # once, daily, weekly, custom
    interval = Column(Integer, nullable=True)
    days_of_week = Column(String, nullable=True)     # JSON array like "[1,3,5]" (Mon,Wed,Fri)
    specific_dates = Column(String, nullable=True)   # JSON array of YYYY-MM-DD
    exclude_dates = Column(String, nullable=True)    # JSON array of YYYY-MM-DD
    anchor_date = Column(Date, nullable=True)


class ScheduleOverride(Base):
    __tablename__ = "schedule_overrides"
    __table_args__ = (UniqueConstraint("ritual_id", "date", name="uq_override_ritual_date"),)

    id = Column(Integer, primary_key=True, index=True)
    ritual_id = Column(String, ForeignKey("rituals.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    removed = Column(Boolean, default=False)
    scheduled_time = Column(String, nullable=True)  # HH:MM


class RitualCompletion(Base):
    __tablename__ = "ritual_completions"
    # At most one ledger entry per ritual per day
    __table_args__ = (
        UniqueConstraint("ritual_id", "completed_date", name="uq_completion_ritual_date"),
        CheckConstraint(
            "step_completion IS NULL OR (step_completion >= 0 AND step_completion <= 1)",
            name="ck_completion_step_fraction"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    ritual_id = Column(String, ForeignKey("rituals.id", ondelete="CASCADE"), nullable=False, index=True)
    completed_date = Column(Date, nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=True)
    step_completion = Column(Float, nullable=True)  # Fraction of required steps done
    details = Column(String, nullable=True)  # JSON with step responses / notes
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
