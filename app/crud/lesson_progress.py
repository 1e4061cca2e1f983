from sqlalchemy import case
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime

from app.crud.base import CRUDBase
from app.models.lesson_progress import LessonProgress
from app.models.lesson import Lesson
from app.models.module import Module

PROGRESS_KEY = ("user_id", "lesson_id")


class CRUDLessonProgress(CRUDBase[LessonProgress, dict, dict]):

    def get_by_user_and_lesson(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
            .first()
        )

    def lock_or_create(self, db: Session, user_id: int, lesson_id: int) -> LessonProgress:
        """Ensure the (user, lesson) row exists and hold a row lock on it."""
        self.insert_if_absent(
            db,
            values={"user_id": user_id, "lesson_id": lesson_id, "completed": False, "watched_seconds": 0},
            conflict_columns=PROGRESS_KEY,
        )
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
            .with_for_update()
            .populate_existing()
            .one()
        )

    def raise_watched_seconds(self, db: Session, progress_id: int, watched_seconds: int) -> None:
        # watched_seconds = max(watched_seconds, :new) as one statement
        self.conditional_update(
            db, LessonProgress.id == progress_id,
            values={
                "watched_seconds": case(
                    (LessonProgress.watched_seconds < watched_seconds, watched_seconds),
                    else_=LessonProgress.watched_seconds,
                )
            },
        )

    def mark_completed(self, db: Session, progress_id: int, completed_at: datetime) -> None:
        self.conditional_update(
            db, LessonProgress.id == progress_id,
            values={"completed": True, "completed_at": completed_at},
        )

    def record_quiz_attempt(
        self, db: Session, progress_id: int, score: float, passed: bool, completed_at: Optional[datetime]
    ) -> None:
        self.conditional_update(
            db, LessonProgress.id == progress_id,
            values={"quiz_score": score, "completed": passed, "completed_at": completed_at},
        )

    def count_completed_in_course(self, db: Session, user_id: int, course_id: int) -> int:
        return (
            db.query(LessonProgress)
            .join(Lesson, LessonProgress.lesson_id == Lesson.id)
            .join(Module, Lesson.module_id == Module.id)
            .filter(LessonProgress.user_id == user_id)
            .filter(Module.course_id == course_id)
            .filter(LessonProgress.completed.is_(True))
            .count()
        )

    def count_completed_by_user(self, db: Session, user_id: int) -> int:
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.completed.is_(True))
            .count()
        )

    def get_with_lessons_in_course(
        self, db: Session, user_id: int, course_id: int
    ) -> List[Tuple[LessonProgress, Lesson]]:
        return (
            db.query(LessonProgress, Lesson)
            .join(Lesson, LessonProgress.lesson_id == Lesson.id)
            .join(Module, Lesson.module_id == Module.id)
            .filter(LessonProgress.user_id == user_id)
            .filter(Module.course_id == course_id)
            .order_by(Module.order, Lesson.order)
            .all()
        )

    def get_completed_lesson_ids(self, db: Session, user_id: int, course_id: int) -> List[int]:
        return [
            progress.lesson_id
            for progress, _ in self.get_with_lessons_in_course(db, user_id=user_id, course_id=course_id)
            if progress.completed
        ]


lesson_progress = CRUDLessonProgress(LessonProgress)
