from sqlalchemy import Column, BigInteger, Boolean, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.db import Base

class UserFeedback(Base):
    """Active feedback event; at most one per (user, item)"""
    __tablename__ = "user_feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user_profiles.user_id", ondelete="CASCADE"), nullable=False)
    app_id = Column(BigInteger, nullable=False)
    label = Column(String, nullable=False)  # love | like | dislike | not_interested
    created_at = Column(DateTime(timezone=True), nullable=False)  # first submission, kept on replace
    updated_at = Column(DateTime(timezone=True), nullable=False)
    applied = Column(Boolean, nullable=False, default=True)  # false after a learned-vector reset that kept history

    __table_args__ = (
        UniqueConstraint("user_id", "app_id", name="uq_user_feedback_user_app"),
        Index("ix_user_feedback_user_updated", "user_id", "updated_at"),
    )

    profile = relationship("UserProfile", back_populates="feedback")
