"""
Completion repository - Data access layer for the completion ledger.
One row per ritual per calendar day, enforced by a unique constraint.
"""
import json
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError

from dayflow.models import RitualCompletion
from dayflow.exceptions import DuplicateCompletionWrite


class CompletionRepository:
    """Repository for RitualCompletion data access"""

    @staticmethod
    def get_by_key(db: Session, ritual_id: str, completed_date: date) -> Optional[RitualCompletion]:
        """Get the ledger entry of a ritual for one day"""
        return db.query(RitualCompletion).filter(
            and_(
                RitualCompletion.ritual_id == ritual_id,
                RitualCompletion.completed_date == completed_date
            )
        ).first()

    @staticmethod
    def get_history(db: Session, ritual_id: str) -> List[RitualCompletion]:
        """Get all entries of a ritual, oldest first"""
        return db.query(RitualCompletion).filter(
            RitualCompletion.ritual_id == ritual_id
        ).order_by(RitualCompletion.completed_date).all()

    @staticmethod
    def get_for_rituals(db: Session, ritual_ids: List[str]) -> List[RitualCompletion]:
        """Get entries of several rituals, oldest first"""
        if not ritual_ids:
            return []
        return db.query(RitualCompletion).filter(
            RitualCompletion.ritual_id.in_(ritual_ids)
        ).order_by(RitualCompletion.completed_date, RitualCompletion.ritual_id).all()

    @staticmethod
    def get_for_rituals_on(db: Session, ritual_ids: List[str], completed_date: date) -> List[RitualCompletion]:
        """Get entries of several rituals for one day"""
        if not ritual_ids:
            return []
        return db.query(RitualCompletion).filter(
            and_(
                RitualCompletion.ritual_id.in_(ritual_ids),
                RitualCompletion.completed_date == completed_date
            )
        ).all()

    @staticmethod
    def upsert(
        db: Session,
        ritual_id: str,
        completed_date: date,
        completed: bool,
        step_completion: Optional[float] = None,
        details: Optional[dict] = None
    ) -> RitualCompletion:
        """
        Write the entry for (ritual_id, completed_date), replacing any existing one.

        Does not commit.

        Raises:
            DuplicateCompletionWrite: If a concurrent writer inserted the same key
                between the lookup and the insert
        """
        encoded_details = json.dumps(details) if details is not None else None

        completion = CompletionRepository.get_by_key(db, ritual_id, completed_date)
        if completion:
            completion.completed = completed
            completion.step_completion = step_completion
            completion.details = encoded_details
            db.flush()
            return completion

        completion = RitualCompletion(
            ritual_id=ritual_id,
            completed_date=completed_date,
            completed=completed,
            step_completion=step_completion,
            details=encoded_details
        )
        try:
            with db.begin_nested():
                db.add(completion)
        except IntegrityError:
            raise DuplicateCompletionWrite(ritual_id, completed_date)
        return completion
