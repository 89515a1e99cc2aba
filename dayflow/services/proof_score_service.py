"""
Proof score service.
Compounding consistency score: +1% for a fully completed day, -1% for a day
with any missed ritual. Users are grouped by current streak for the leaderboard.
"""
import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session

from dayflow.constants import (
    PROOF_SCORE_INITIAL,
    PROOF_SCORE_COMPLETED_FACTOR,
    PROOF_SCORE_MISSED_FACTOR,
    PROOF_STREAK_AFTER_MISS,
    PROOF_SCORE_TIERS,
    PROOF_TIER_RISING,
)
from dayflow.exceptions import UnorderedHistory
from dayflow.repositories.completion_repository import CompletionRepository
from dayflow.repositories.profile_repository import ProfileRepository
from dayflow.schemas import LeaderboardEntry, ProofScoreState, RankedEntry
from dayflow.services.schedule_service import ScheduleService

logger = logging.getLogger("dayflow.proof_score")


class ProofScoreEngine:
    """Pure score arithmetic and leaderboard ordering"""

    @staticmethod
    def apply_daily_outcome(
        prev_score: float,
        prev_streak: int,
        all_due_completed: bool
    ) -> Tuple[float, int]:
        """
        Advance the score by one day.

        Args:
            prev_score: Score after the previous day
            prev_streak: Streak after the previous day
            all_due_completed: Whether every ritual due that day was completed

        Returns:
            Tuple of (new_score, new_streak)
        """
        if all_due_completed:
            return prev_score * PROOF_SCORE_COMPLETED_FACTOR, prev_streak + 1
        return prev_score * PROOF_SCORE_MISSED_FACTOR, PROOF_STREAK_AFTER_MISS

    @staticmethod
    def replay(outcomes: Iterable) -> ProofScoreState:
        """
        Fold a full day-outcome history from a fresh start.

        Args:
            outcomes: Objects with `date` and `completed`, strictly ascending by date

        Raises:
            UnorderedHistory: If a date is not after the previous one
        """
        score, streak = PROOF_SCORE_INITIAL, 0
        last_date = None
        for outcome in outcomes:
            if last_date is not None and outcome.date <= last_date:
                raise UnorderedHistory(last_date, outcome.date)
            score, streak = ProofScoreEngine.apply_daily_outcome(score, streak, outcome.completed)
            last_date = outcome.date
        return ProofScoreState(score=score, current_streak=streak, last_scored_date=last_date)

    @staticmethod
    def score_tier(score: float) -> str:
        for threshold, tier in PROOF_SCORE_TIERS:
            if score >= threshold:
                return tier
        return PROOF_TIER_RISING

    @staticmethod
    def build_leaderboard(entries: Iterable[LeaderboardEntry]) -> Dict[int, List[RankedEntry]]:
        """
        Group users into proof groups by current streak and rank each group.

        Ranking is score descending, then earlier join date, then user ID,
        so equal inputs always give the same order.

        Returns:
            Dictionary of streak -> ranked entries, keys in descending streak order
        """
        groups: Dict[int, List[LeaderboardEntry]] = {}
        for entry in entries:
            groups.setdefault(entry.current_streak, []).append(entry)

        leaderboard = {}
        for streak in sorted(groups, reverse=True):
            ordered = sorted(
                groups[streak],
                key=lambda entry: (-entry.score, entry.joined_on, entry.user_id)
            )
            leaderboard[streak] = [
                RankedEntry(
                    **entry.model_dump(),
                    rank=rank,
                    tier=ProofScoreEngine.score_tier(entry.score)
                )
                for rank, entry in enumerate(ordered, start=1)
            ]
        return leaderboard

    @staticmethod
    def placement(entries: Iterable[LeaderboardEntry], user_id: str) -> Optional[RankedEntry]:
        """Ranked entry of one user inside their proof group"""
        for group in ProofScoreEngine.build_leaderboard(entries).values():
            for ranked in group:
                if ranked.user_id == user_id:
                    return ranked
        return None


def apply_daily_outcome(prev_score: float, prev_streak: int, all_due_completed: bool) -> Tuple[float, int]:
    return ProofScoreEngine.apply_daily_outcome(prev_score, prev_streak, all_due_completed)


class ProofScoreService:
    """Service for the stored proof score of each user"""

    def __init__(self, db: Session):
        self.db = db
        self.profile_repo = ProfileRepository()
        self.completion_repo = CompletionRepository()
        self.schedule_service = ScheduleService(db)
        self.engine = ProofScoreEngine()

    def get_state(self, user_id: str) -> ProofScoreState:
        profile = self.profile_repo.get(self.db, user_id)
        if not profile:
            return ProofScoreState()
        return ProofScoreState(
            score=profile.proof_score,
            current_streak=profile.current_streak,
            last_scored_date=profile.last_scored_date
        )

    def day_outcome(
        self,
        user_id: str,
        day: date,
        due_ritual_ids: Optional[List[str]] = None,
        timezone: Optional[str] = None
    ) -> Optional[bool]:
        """
        Whether every ritual due on a day has a completed ledger entry.

        Args:
            user_id: User to evaluate
            day: Calendar date
            due_ritual_ids: Due rituals if the caller already knows them;
                otherwise the stored schedule is resolved
            timezone: Time zone for schedule resolution

        Returns:
            True/False, or None when nothing was due
        """
        if due_ritual_ids is None:
            schedule = self.schedule_service.get_day_schedule(user_id, day, timezone)
            due_ritual_ids = [occurrence.ritual_id for occurrence in schedule.occurrences]

        if not due_ritual_ids:
            return None

        completions = self.completion_repo.get_for_rituals_on(self.db, due_ritual_ids, day)
        completed_ids = {c.ritual_id for c in completions if c.completed}
        return all(ritual_id in completed_ids for ritual_id in due_ritual_ids)

    def close_day(
        self,
        user_id: str,
        day: date,
        due_ritual_ids: Optional[List[str]] = None,
        timezone: Optional[str] = None
    ) -> ProofScoreState:
        """
        Fold a finished day into the user's stored score.

        Idempotent: a day at or before the last scored date is not applied
        again. Unscored days between the last scored date and `day` are
        applied first, in date order. Days with nothing due leave the score
        unchanged.

        Args:
            user_id: User whose day ended
            day: Calendar date being closed
            due_ritual_ids: Due rituals of `day`, if already resolved
            timezone: Time zone for schedule resolution

        Returns:
            ProofScoreState after the update
        """
        profile = self.profile_repo.get_or_create(self.db, user_id, joined_on=day, timezone=timezone)

        if profile.last_scored_date and day <= profile.last_scored_date:
            logger.info(f"Day {day} already scored for {user_id}, skipping")
            return self.get_state(user_id)

        start = profile.last_scored_date + timedelta(days=1) if profile.last_scored_date else day
        score, streak = profile.proof_score, profile.current_streak

        current = start
        while current <= day:
            outcome = self.day_outcome(
                user_id,
                current,
                due_ritual_ids if current == day else None,
                timezone
            )
            if outcome is None:
                logger.debug(f"Nothing due for {user_id} on {current}, score unchanged")
            else:
                score, streak = self.engine.apply_daily_outcome(score, streak, outcome)
                logger.info(
                    f"Closed {current} for {user_id}: "
                    f"{'completed' if outcome else 'missed'}, score={score:.4f}, streak={streak}"
                )
            current += timedelta(days=1)

        profile.proof_score = score
        profile.current_streak = streak
        profile.last_scored_date = day
        self.profile_repo.update(self.db, profile)

        return self.get_state(user_id)

    def get_leaderboard(self) -> Dict[int, List[RankedEntry]]:
        """Proof groups built from every stored profile"""
        return self.engine.build_leaderboard(self._leaderboard_entries())

    def get_placement(self, user_id: str) -> Optional[RankedEntry]:
        return self.engine.placement(self._leaderboard_entries(), user_id)

    def _leaderboard_entries(self) -> List[LeaderboardEntry]:
        return [
            LeaderboardEntry(
                user_id=profile.user_id,
                score=profile.proof_score,
                current_streak=profile.current_streak,
                joined_on=profile.joined_on
            )
            for profile in self.profile_repo.get_all(self.db)
        ]
