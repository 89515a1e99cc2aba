"""
Ritual repository - Data access layer for rituals, their frequencies and
per-day schedule overrides.
"""
import json
from datetime import datetime, date, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from dayflow.models import Ritual, RitualFrequency, ScheduleOverride
from dayflow.schemas import RitualOverride, ScheduledRitual


class RitualRepository:
    """Repository for Ritual data access"""

    @staticmethod
    def get_by_id(db: Session, ritual_id: str) -> Optional[Ritual]:
        """Get ritual by ID"""
        return db.query(Ritual).filter(Ritual.id == ritual_id).first()

    @staticmethod
    def get_active_for_user(db: Session, user_id: str) -> List[Ritual]:
        """Get active rituals of a user in creation order"""
        return db.query(Ritual).filter(
            and_(
                Ritual.user_id == user_id,
                Ritual.is_active == True
            )
        ).order_by(Ritual.created_at, Ritual.id).all()

    @staticmethod
    def get_frequency(db: Session, ritual_id: str) -> Optional[RitualFrequency]:
        """Get the frequency row of a ritual"""
        return db.query(RitualFrequency).filter(RitualFrequency.ritual_id == ritual_id).first()

    @staticmethod
    def create(db: Session, ritual: Ritual, frequency: RitualFrequency) -> Ritual:
        """Create a ritual together with its frequency"""
        db.add(ritual)
        db.flush()
        frequency.ritual_id = ritual.id
        db.add(frequency)
        db.commit()
        db.refresh(ritual)
        return ritual

    @staticmethod
    def update(db: Session, ritual: Ritual) -> Ritual:
        """Update existing ritual"""
        db.commit()
        db.refresh(ritual)
        return ritual

    @staticmethod
    def get_override(db: Session, ritual_id: str, target_date: date) -> Optional[ScheduleOverride]:
        """Get the override of a ritual for one day"""
        return db.query(ScheduleOverride).filter(
            and_(
                ScheduleOverride.ritual_id == ritual_id,
                ScheduleOverride.date == target_date
            )
        ).first()

    @staticmethod
    def get_overrides_for_date(db: Session, ritual_ids: List[str], target_date: date) -> List[ScheduleOverride]:
        """Get all overrides of the given rituals for one day"""
        if not ritual_ids:
            return []
        return db.query(ScheduleOverride).filter(
            and_(
                ScheduleOverride.ritual_id.in_(ritual_ids),
                ScheduleOverride.date == target_date
            )
        ).all()

    @staticmethod
    def save_override(db: Session, override: ScheduleOverride) -> ScheduleOverride:
        """Insert or update an override"""
        db.add(override)
        db.commit()
        db.refresh(override)
        return override

    @staticmethod
    def delete_override(db: Session, override: ScheduleOverride) -> None:
        """Delete an override"""
        db.delete(override)
        db.commit()

    @staticmethod
    def frequency_options(frequency: RitualFrequency) -> dict:
        """Raw rule options of a stored frequency (validated later by the resolver)"""
        return {
            "frequency_type": frequency.frequency_type,
            "interval": frequency.interval,
            "days_of_week": json.loads(frequency.days_of_week) if frequency.days_of_week else None,
            "specific_dates": json.loads(frequency.specific_dates) if frequency.specific_dates else None,
            "exclude_dates": json.loads(frequency.exclude_dates) if frequency.exclude_dates else None,
            "anchor_date": frequency.anchor_date,
        }

    @staticmethod
    def get_rituals_with_rules(db: Session, user_id: str, target_date: date) -> List[ScheduledRitual]:
        """
        Get a user's active rituals with raw rule options and the override for
        target_date. Rituals created after target_date are left out.
        """
        day_end = datetime.combine(target_date + timedelta(days=1), datetime.min.time())
        rows = db.query(Ritual, RitualFrequency).join(
            RitualFrequency, RitualFrequency.ritual_id == Ritual.id
        ).filter(
            and_(
                Ritual.user_id == user_id,
                Ritual.is_active == True,
                Ritual.created_at < day_end
            )
        ).order_by(Ritual.created_at, Ritual.id).all()

        overrides = {
            override.ritual_id: override
            for override in RitualRepository.get_overrides_for_date(
                db, [ritual.id for ritual, _ in rows], target_date
            )
        }

        scheduled = []
        for ritual, frequency in rows:
            override = overrides.get(ritual.id)
            scheduled.append(ScheduledRitual(
                ritual_id=ritual.id,
                rule=RitualRepository.frequency_options(frequency),
                default_time=ritual.default_time,
                override=RitualOverride(
                    date=override.date,
                    removed=bool(override.removed),
                    scheduled_time=override.scheduled_time
                ) if override else None
            ))
        return scheduled
