from sqlalchemy import Column, Integer, String, DateTime, Float, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db import Base

class UserProfile(Base):
    """Per-user vector state and entitlement"""
    __tablename__ = "user_profiles"

    user_id = Column(String, primary_key=True)
    steam_id = Column(String, nullable=True, index=True)

    subscription_tier = Column(String, nullable=False, default="free")  # free | premium
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Passive preference vector, fully derived from user_games
    preference_vector = Column(JSON, nullable=True)
    preference_updated_at = Column(DateTime(timezone=True), nullable=True)
    items_analyzed = Column(Integer, nullable=False, default=0)
    total_playtime_hours = Column(Float, nullable=False, default=0.0)

    # Feedback-learned vector and the preference snapshot it was seeded from
    learned_vector = Column(JSON, nullable=True)
    learned_seed_vector = Column(JSON, nullable=True)
    learned_updated_at = Column(DateTime(timezone=True), nullable=True)
    feedback_likes_count = Column(Integer, nullable=False, default=0)
    feedback_dislikes_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    games = relationship("UserGame", back_populates="profile", cascade="all, delete-orphan")
    feedback = relationship("UserFeedback", back_populates="profile", cascade="all, delete-orphan")
    hidden_games = relationship("UserHiddenGame", back_populates="profile", cascade="all, delete-orphan")
    daily_pick = relationship("UserDailyPick", back_populates="profile", uselist=False, cascade="all, delete-orphan")
