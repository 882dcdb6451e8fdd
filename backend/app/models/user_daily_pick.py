from sqlalchemy import Column, BigInteger, Integer, String, Date, Float, ForeignKey
from sqlalchemy.orm import relationship
from app.db import Base

class UserDailyPick(Base):
    """Today's pick per user; the row is overwritten on the first request of a new UTC day"""
    __tablename__ = "user_daily_picks"

    user_id = Column(String, ForeignKey("user_profiles.user_id", ondelete="CASCADE"), primary_key=True)
    pick_date = Column(Date, nullable=False)
    app_id = Column(BigInteger, nullable=False)
    similarity = Column(Float, nullable=False)
    pool_size = Column(Integer, nullable=False)

    profile = relationship("UserProfile", back_populates="daily_pick")
