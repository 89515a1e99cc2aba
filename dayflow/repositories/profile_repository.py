"""
Profile repository - Data access layer for UserProfile (proof score state).
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from dayflow.models import UserProfile


class ProfileRepository:
    """Repository for UserProfile data access"""

    @staticmethod
    def get(db: Session, user_id: str) -> Optional[UserProfile]:
        """Get profile by user ID"""
        return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()

    @staticmethod
    def get_or_create(
        db: Session,
        user_id: str,
        joined_on: Optional[date] = None,
        timezone: Optional[str] = None
    ) -> UserProfile:
        """
        Get profile (creates with a fresh 1.0 score if not exists).

        Returns:
            UserProfile object
        """
        profile = ProfileRepository.get(db, user_id)
        if not profile:
            profile = UserProfile(user_id=user_id)
            if joined_on:
                profile.joined_on = joined_on
            if timezone:
                profile.timezone = timezone
            db.add(profile)
            db.commit()
            db.refresh(profile)
        return profile

    @staticmethod
    def get_all(db: Session) -> List[UserProfile]:
        """Get all profiles"""
        return db.query(UserProfile).order_by(UserProfile.joined_on, UserProfile.user_id).all()

    @staticmethod
    def update(db: Session, profile: UserProfile) -> UserProfile:
        """Update existing profile"""
        db.commit()
        db.refresh(profile)
        return profile
