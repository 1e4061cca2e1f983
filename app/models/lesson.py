from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import LessonTypeEnum, DripTypeEnum

class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        CheckConstraint("duration >= 0", name="ck_lessons_duration_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=True)
    lesson_type = Column(Enum(LessonTypeEnum), nullable=False, default=LessonTypeEnum.VIDEO)
    content = Column(JSON, nullable=True)
    duration = Column(Integer, nullable=False, default=0) # Duration in minutes
    order = Column(Integer, nullable=False, default=0)
    is_free = Column(Boolean, nullable=False, default=False)
    drip_type = Column(Enum(DripTypeEnum), nullable=True, default=DripTypeEnum.IMMEDIATE)
    drip_days = Column(Integer, nullable=True)
    drip_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    module = relationship("Module", back_populates="lessons")
    progress_records = relationship("LessonProgress", back_populates="lesson", cascade="all, delete-orphan")
