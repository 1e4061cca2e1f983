from sqlalchemy import Column, Integer, ForeignKey, DateTime, Boolean, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base


class LessonProgress(Base):
    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    watched_seconds = Column(Integer, nullable=False, default=0)
    quiz_score = Column(Numeric(5, 2), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    lesson = relationship("Lesson", back_populates="progress_records")
