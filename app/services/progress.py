import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.constants import EnrollmentStatusEnum, LessonTypeEnum
from app.core.exceptions import AccessDenied, LessonLocked, NotAQuiz, NotFound
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.user_stats import user_stats as crud_user_stats
from app.models.enrollment import Enrollment
from app.models.lesson import Lesson
from app.models.lesson_progress import LessonProgress
from app.schemas.lesson import LessonAvailability, QuizContent
from app.schemas.lesson_progress import CourseProgress, LessonProgressDetail
from app.services import drip
from app.services.enrollment_state import EnrollmentStateMachine, enrollment_state_machine
from app.services.gamification import GamificationService, gamification_service
from app.services.quiz import QuizGrade, grade_quiz

logger = logging.getLogger(__name__)


@dataclass
class LessonAccess:
    enrollment: Enrollment
    lesson: Lesson


@dataclass
class LessonCompletion:
    progress: LessonProgress
    course_completed: bool


@dataclass
class QuizAttempt:
    grade: QuizGrade
    progress: LessonProgress
    course_completed: bool


class ProgressService:
    """Per-lesson progress and its roll-up into course completion."""

    def __init__(
        self,
        clock: Clock = system_clock,
        gamification: Optional[GamificationService] = None,
        state_machine: Optional[EnrollmentStateMachine] = None,
    ):
        self.clock = clock
        self.gamification = gamification or gamification_service
        self.state_machine = state_machine or enrollment_state_machine

    def check_access(self, db: Session, user_id: int, lesson_id: int) -> LessonAccess:
        """Active enrollment in the lesson's course and an unlocked drip policy."""
        lesson = crud_lesson.get(db, id=lesson_id)
        if not lesson:
            raise NotFound("Lesson not found")

        access = crud_enrollment.get_access_for_lesson(db, user_id=user_id, lesson_id=lesson_id)
        if not access:
            logger.warning(f"User {user_id} has no active enrollment for lesson {lesson_id}")
            raise AccessDenied()
        enrollment, _ = access

        now = self.clock.now()
        policy = drip.policy_from_lesson(lesson)
        if not drip.is_unlocked(policy, enrollment.enrolled_at, now):
            logger.info(f"Lesson {lesson_id} is still locked for user {user_id}")
            raise LessonLocked(
                unlock_date=drip.unlock_date(policy, enrollment.enrolled_at),
                days_until_unlock=drip.days_until_unlock(policy, enrollment.enrolled_at, now),
            )
        return LessonAccess(enrollment=enrollment, lesson=lesson)

    def report_watch_time(self, db: Session, user_id: int, lesson_id: int, watched_seconds: int) -> LessonProgress:
        self.check_access(db, user_id, lesson_id)

        progress = crud_lesson_progress.lock_or_create(db, user_id, lesson_id)
        previous = progress.watched_seconds
        crud_lesson_progress.raise_watched_seconds(db, progress.id, watched_seconds)
        db.refresh(progress)

        if settings.LEGACY_POINT_ACCRUAL:
            minutes = watched_seconds // 60
            points = settings.WATCH_POINTS
        else:
            minutes = max(0, watched_seconds // 60 - previous // 60)
            points = settings.WATCH_POINTS if watched_seconds > previous else 0
        crud_user_stats.add(db, user_id, points=points, watch_minutes=minutes)

        self.gamification.record_daily_activity(db, user_id)
        return progress

    def complete_lesson(self, db: Session, user_id: int, lesson_id: int) -> LessonCompletion:
        access = self.check_access(db, user_id, lesson_id)

        # Serializes completion per (user, course) so the last two lessons
        # finishing concurrently still produce exactly one transition.
        enrollment = crud_enrollment.get_by_user_and_course_for_update(
            db, user_id=user_id, course_id=access.enrollment.course_id
        )
        progress = crud_lesson_progress.lock_or_create(db, user_id, lesson_id)
        newly_completed = not progress.completed
        if newly_completed:
            crud_lesson_progress.mark_completed(db, progress.id, self.clock.now())
            db.refresh(progress)

        if newly_completed or settings.LEGACY_POINT_ACCRUAL:
            crud_user_stats.add(db, user_id, points=settings.LESSON_COMPLETION_POINTS)

        course_completed = self._complete_course_if_finished(db, enrollment)
        self.gamification.record_daily_activity(db, user_id)
        if newly_completed and not course_completed:
            self.gamification.check_completion_badges(db, user_id)

        logger.info(f"User {user_id} completed lesson {lesson_id}")
        return LessonCompletion(progress=progress, course_completed=course_completed)

    def submit_quiz(self, db: Session, user_id: int, lesson_id: int, answers: Sequence[Optional[int]]) -> QuizAttempt:
        access = self.check_access(db, user_id, lesson_id)
        lesson = access.lesson
        if lesson.lesson_type != LessonTypeEnum.QUIZ:
            raise NotAQuiz()

        try:
            content = QuizContent.model_validate(lesson.content or {})
        except ValidationError:
            logger.error(f"Quiz lesson {lesson_id} has malformed content; grading against no questions")
            content = QuizContent()

        grade = grade_quiz(content.questions, answers)

        enrollment = crud_enrollment.get_by_user_and_course_for_update(
            db, user_id=user_id, course_id=access.enrollment.course_id
        )
        progress = crud_lesson_progress.lock_or_create(db, user_id, lesson_id)
        newly_completed = grade.passed and not progress.completed
        crud_lesson_progress.record_quiz_attempt(
            db,
            progress.id,
            score=grade.score,
            passed=grade.passed,
            completed_at=self.clock.now() if grade.passed else None,
        )
        db.refresh(progress)

        course_completed = self._complete_course_if_finished(db, enrollment) if grade.passed else False
        self.gamification.record_daily_activity(db, user_id)
        if newly_completed and not course_completed:
            self.gamification.check_completion_badges(db, user_id)

        logger.info(
            f"User {user_id} scored {grade.score} on quiz {lesson_id} "
            f"({grade.correct_answers}/{grade.total_questions}, passed={grade.passed})"
        )
        return QuizAttempt(grade=grade, progress=progress, course_completed=course_completed)

    def _complete_course_if_finished(self, db: Session, enrollment: Enrollment) -> bool:
        """Must run while holding the enrollment row lock."""
        total, completed = self._count_lessons(db, enrollment.user_id, enrollment.course_id)
        enrollment.progress = self._percent(total, completed)
        db.flush()

        if enrollment.status != EnrollmentStatusEnum.ACTIVE or total == 0 or completed < total:
            return False

        self.state_machine.complete(db, enrollment, self.clock.now())
        crud_user_stats.add(db, enrollment.user_id, points=settings.COURSE_COMPLETION_POINTS)
        logger.info(f"User {enrollment.user_id} completed course {enrollment.course_id}")
        self.gamification.on_course_completed(db, enrollment.user_id, enrollment.course_id)
        return True

    def get_course_progress(self, db: Session, user_id: int, course_id: int) -> CourseProgress:
        enrollment = self._get_active_enrollment(db, user_id, course_id)

        total, completed = self._count_lessons(db, user_id, course_id)
        percent = self._percent(total, completed)
        enrollment.progress = percent
        db.flush()

        details = [
            LessonProgressDetail(
                id=progress.id,
                user_id=progress.user_id,
                lesson_id=progress.lesson_id,
                completed=progress.completed,
                watched_seconds=progress.watched_seconds,
                quiz_score=progress.quiz_score,
                completed_at=progress.completed_at,
                lesson_title=lesson.title,
                lesson_duration=lesson.duration,
            )
            for progress, lesson in crud_lesson_progress.get_with_lessons_in_course(db, user_id, course_id)
        ]
        return CourseProgress(
            course_id=course_id,
            total_lessons=total,
            completed_lessons=completed,
            progress_percent=percent,
            enrolled_at=enrollment.enrolled_at,
            lessons_progress=details,
        )

    def get_lesson_availability(self, db: Session, user_id: int, course_id: int) -> List[LessonAvailability]:
        enrollment = self._get_active_enrollment(db, user_id, course_id)
        now = self.clock.now()
        completed_ids = set(crud_lesson_progress.get_completed_lesson_ids(db, user_id, course_id))

        availability = []
        for lesson in crud_lesson.get_by_course(db, course_id):
            policy = drip.policy_from_lesson(lesson)
            availability.append(LessonAvailability(
                lesson_id=lesson.id,
                module_id=lesson.module_id,
                title=lesson.title,
                order=lesson.order,
                unlocked=drip.is_unlocked(policy, enrollment.enrolled_at, now),
                unlock_date=drip.unlock_date(policy, enrollment.enrolled_at),
                days_until_unlock=drip.days_until_unlock(policy, enrollment.enrolled_at, now),
                completed=lesson.id in completed_ids,
            ))
        return availability

    def _get_active_enrollment(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if not enrollment or enrollment.status != EnrollmentStatusEnum.ACTIVE:
            raise AccessDenied("Not enrolled in this course")
        return enrollment

    def _count_lessons(self, db: Session, user_id: int, course_id: int):
        total = crud_lesson.count_by_course(db, course_id)
        completed = crud_lesson_progress.count_completed_in_course(db, user_id, course_id)
        return total, completed

    @staticmethod
    def _percent(total: int, completed: int) -> int:
        if total == 0:
            return 0
        percent = Decimal(100 * completed) / Decimal(total)
        return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


progress_service = ProgressService()
