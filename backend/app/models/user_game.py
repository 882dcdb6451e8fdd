from sqlalchemy import Column, BigInteger, Integer, String, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db import Base

class UserGame(Base):
    """Owned-item signal written by library sync"""
    __tablename__ = "user_games"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user_profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    app_id = Column(BigInteger, nullable=False, index=True)
    playtime_minutes = Column(Integer, nullable=False, default=0)
    last_played = Column(DateTime(timezone=True), nullable=True)
    achievements_earned = Column(Integer, nullable=True)
    achievements_total = Column(Integer, nullable=True)
    genres = Column(JSON)  # Denormalized from item metadata

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "app_id", name="uq_user_games_user_app"),
    )

    profile = relationship("UserProfile", back_populates="games")
