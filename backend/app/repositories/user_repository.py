from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session
from app.repositories.base_repository import BaseRepository
from app.models.user_profile import UserProfile

class UserProfileRepository(BaseRepository[UserProfile]):
    """Per-user profile row: entitlement, Steam link and vector state"""
    
    def __init__(self, db: Session):
        super().__init__(UserProfile, db)
    
    def get_or_create(self, user_id: str) -> UserProfile:
        """Get the profile row, inserting an empty one on first use"""
        profile = self.get(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id, subscription_tier="free")
            self.db.add(profile)
            self.db.flush()
        return profile
    
    def lock(self, user_id: str) -> UserProfile:
        """SELECT ... FOR UPDATE on the profile row for the rest of the transaction"""
        profile = (
            self.db.query(UserProfile)
            .filter(UserProfile.user_id == user_id)
            .with_for_update()
            .first()
        )
        if profile is None:
            profile = self.get_or_create(user_id)
        return profile
    
    def set_steam_id(self, user_id: str, steam_id: Optional[str]) -> UserProfile:
        profile = self.get_or_create(user_id)
        return self.update(profile, {"steam_id": steam_id})
    
    def set_subscription(self, user_id: str, tier: str, expires_at: Optional[datetime] = None) -> UserProfile:
        profile = self.get_or_create(user_id)
        return self.update(profile, {
            "subscription_tier": tier,
            "subscription_expires_at": expires_at
        })
