from app.db import Base
from .item_embedding import ItemEmbedding
from .user_profile import UserProfile
from .user_game import UserGame
from .user_feedback import UserFeedback
from .user_hidden_game import UserHiddenGame
from .user_daily_pick import UserDailyPick

__all__ = [
    'ItemEmbedding', 'UserProfile', 'UserGame', 'UserFeedback', 'UserHiddenGame', 'UserDailyPick'
]
