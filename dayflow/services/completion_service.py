"""
Completion service.
Writes the per-ritual, per-day completion ledger and derives streaks from it.
"""
import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from dayflow.exceptions import (
    DayflowException, DuplicateCompletionWrite, InvalidStepCompletion, RitualNotFoundException
)
from dayflow.models import RitualCompletion
from dayflow.repositories.completion_repository import CompletionRepository
from dayflow.repositories.ritual_repository import RitualRepository
from dayflow.schemas import BatchItemResult, CompletionEntry, CompletionRequest, StreakResult
from dayflow.services.date_service import DateService, DateLike
from dayflow.services.streak_service import StreakCalculator

logger = logging.getLogger("dayflow.completions")


def to_entry(completion: RitualCompletion) -> CompletionEntry:
    """Ledger row to the value passed to streak and score calculations"""
    return CompletionEntry(
        ritual_id=completion.ritual_id,
        date=completion.completed_date,
        completed=completion.completed,
        step_completion=completion.step_completion,
        details=json.loads(completion.details) if completion.details else None
    )


class CompletionService:
    """Service for completion ledger writes and streak queries"""

    def __init__(self, db: Session):
        self.db = db
        self.completion_repo = CompletionRepository()
        self.ritual_repo = RitualRepository()
        self.date_service = DateService()
        self.calculator = StreakCalculator()

    def record_completion(
        self,
        ritual_id: str,
        completed_date: DateLike,
        completed: bool = True,
        step_completion: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> CompletionEntry:
        """
        Record (or replace) the outcome of a ritual on one day.

        A concurrent insert for the same day is resolved as last write wins:
        the losing insert is retried as an update of the winner's row in a
        fresh transaction, so the winner's committed row is visible.

        Args:
            ritual_id: Ritual ID
            completed_date: Calendar date (date or YYYY-MM-DD)
            completed: Whether the ritual was done
            step_completion: Fraction of required steps done (0.0-1.0)
            details: Step responses / notes

        Returns:
            The stored CompletionEntry

        Raises:
            RitualNotFoundException: If the ritual does not exist
            AmbiguousDate: If the date string is malformed
            InvalidStepCompletion: If step_completion is outside 0.0-1.0
        """
        if step_completion is not None and not 0.0 <= step_completion <= 1.0:
            raise InvalidStepCompletion(step_completion)
        if not self.ritual_repo.get_by_id(self.db, ritual_id):
            raise RitualNotFoundException(ritual_id)

        target = self.date_service.parse_iso_date(completed_date)
        try:
            completion = self.completion_repo.upsert(
                self.db, ritual_id, target, completed, step_completion, details
            )
        except DuplicateCompletionWrite as e:
            logger.info(f"{e}; retrying as update")
            self.db.rollback()
            completion = self.completion_repo.upsert(
                self.db, ritual_id, target, completed, step_completion, details
            )

        self.db.commit()
        self.db.refresh(completion)
        logger.info(f"Recorded ritual {ritual_id} on {target}: completed={completed}")
        return to_entry(completion)

    def batch_record(self, requests: Iterable[CompletionRequest]) -> List[BatchItemResult]:
        """
        Record several completions; each item succeeds or fails on its own.

        Returns:
            One BatchItemResult per request, in request order
        """
        results = []
        for request in requests:
            try:
                entry = self.record_completion(
                    request.ritual_id,
                    request.date,
                    request.completed,
                    request.step_completion,
                    request.details
                )
                results.append(BatchItemResult(
                    ritual_id=request.ritual_id, date=request.date, success=True, entry=entry
                ))
            except (DayflowException, SQLAlchemyError) as e:
                self.db.rollback()
                logger.warning(f"Batch item {request.ritual_id} on {request.date} failed: {e}")
                results.append(BatchItemResult(
                    ritual_id=request.ritual_id, date=request.date, success=False, error=str(e)
                ))
        return results

    def get_history(self, ritual_id: str) -> List[CompletionEntry]:
        """Ordered ledger of one ritual"""
        return [to_entry(c) for c in self.completion_repo.get_history(self.db, ritual_id)]

    def get_streak(self, ritual_id: str, as_of: Optional[date] = None) -> StreakResult:
        """
        Streak of one ritual.

        Raises:
            RitualNotFoundException: If the ritual does not exist
        """
        if not self.ritual_repo.get_by_id(self.db, ritual_id):
            raise RitualNotFoundException(ritual_id)
        return self.calculator.compute(self.get_history(ritual_id), as_of)

    def get_ritual_set_streak(self, user_id: str, as_of: Optional[date] = None) -> StreakResult:
        """Streak over all active rituals of a user, one outcome per day"""
        ritual_ids = [ritual.id for ritual in self.ritual_repo.get_active_for_user(self.db, user_id)]
        entries = [to_entry(c) for c in self.completion_repo.get_for_rituals(self.db, ritual_ids)]
        return self.calculator.compute(self.calculator.aggregate_day_outcomes(entries), as_of)
