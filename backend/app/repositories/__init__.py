from .base_repository import BaseRepository
from .user_repository import UserProfileRepository
from .embedding_repository import EmbeddingRepository
from .preference_repository import PreferenceRepository
from .feedback_repository import FeedbackRepository

__all__ = [
    "BaseRepository",
    "UserProfileRepository",
    "EmbeddingRepository",
    "PreferenceRepository",
    "FeedbackRepository"
]
