from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class LessonProgress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    lesson_id: int
    completed: bool
    watched_seconds: int
    quiz_score: Optional[Decimal] = None
    completed_at: Optional[datetime] = None


class LessonProgressDetail(LessonProgress):
    lesson_title: str
    lesson_duration: int


class WatchTimeReport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    watched_seconds: int = Field(..., ge=0)


class CourseProgress(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    course_id: int
    total_lessons: int
    completed_lessons: int
    progress_percent: int
    enrolled_at: datetime
    lessons_progress: List[LessonProgressDetail]


class LessonCompletionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    progress_row: LessonProgress
    course_completed: bool
