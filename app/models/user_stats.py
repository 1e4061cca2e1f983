from sqlalchemy import Column, Integer, ForeignKey, Date
from sqlalchemy.orm import relationship
from app.core.database import Base


class UserStats(Base):
    __tablename__ = "user_stats"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    total_watch_time = Column(Integer, nullable=False, default=0) # Minutes
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    last_activity_date = Column(Date, nullable=True)

    user = relationship("User", back_populates="stats")
