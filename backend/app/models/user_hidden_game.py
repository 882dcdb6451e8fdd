from sqlalchemy import Column, BigInteger, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db import Base

class UserHiddenGame(Base):
    """Item hidden from every result list; not a feedback label"""
    __tablename__ = "user_hidden_games"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user_profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    app_id = Column(BigInteger, nullable=False)
    hidden_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "app_id", name="uq_user_hidden_games_user_app"),
    )

    profile = relationship("UserProfile", back_populates="hidden_games")
