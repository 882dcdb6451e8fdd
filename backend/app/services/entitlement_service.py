import logging
from datetime import datetime
from typing import Callable
from app.core.enums import SubscriptionTier
from app.core.interfaces import EntitlementGateInterface
from app.core.timeutil import as_utc, utcnow
from app.repositories.user_repository import UserProfileRepository

logger = logging.getLogger(__name__)

class EntitlementService(EntitlementGateInterface):
    """Premium check backed by the subscription columns of user_profiles"""

    def __init__(self, profile_repo: UserProfileRepository, clock: Callable[[], datetime] = utcnow):
        self.profile_repo = profile_repo
        self.clock = clock

    def is_entitled(self, user_id: str) -> bool:
        profile = self.profile_repo.get(user_id)
        if not profile or profile.subscription_tier != SubscriptionTier.PREMIUM.value:
            return False
        expires_at = as_utc(profile.subscription_expires_at)
        if expires_at is not None and expires_at <= self.clock():
            logger.info(f"Premium subscription for user {user_id} expired at {expires_at.isoformat()}")
            return False
        return True
