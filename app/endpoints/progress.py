from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.utils import deps
from app.schemas.user import UserContext
from app.schemas.lesson import LessonAvailability
from app.schemas.lesson_progress import (
    CourseProgress,
    LessonCompletionResult,
    LessonProgress,
    WatchTimeReport,
)
from app.schemas.quiz import QuizResult, QuizSubmission
from app.services.progress import progress_service

router = APIRouter()


@router.get("/courses/{course_id}/progress", response_model=APIResponse[CourseProgress])
def get_course_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = progress_service.get_course_progress(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course progress retrieved successfully", data=progress)


@router.get("/courses/{course_id}/lessons/availability", response_model=APIResponse[List[LessonAvailability]])
def get_lesson_availability(
    *,
    db: Session = Depends(deps.get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    availability = progress_service.get_lesson_availability(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Lesson availability retrieved successfully", data=availability)


@router.post("/lessons/{lesson_id}/progress", response_model=APIResponse[LessonProgress])
def report_watch_time(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    report_in: WatchTimeReport,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = progress_service.report_watch_time(
        db, user_id=context.user.id, lesson_id=lesson_id, watched_seconds=report_in.watched_seconds
    )
    return APIResponse(message="Progress updated", data=LessonProgress.model_validate(progress))


@router.post("/lessons/{lesson_id}/complete", response_model=APIResponse[LessonCompletionResult])
def complete_lesson(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    completion = progress_service.complete_lesson(db, user_id=context.user.id, lesson_id=lesson_id)
    message = "Course completed!" if completion.course_completed else "Lesson completed successfully"
    return APIResponse(
        message=message,
        data=LessonCompletionResult(
            progress_row=LessonProgress.model_validate(completion.progress),
            course_completed=completion.course_completed,
        )
    )


@router.post("/lessons/{lesson_id}/quiz/submit", response_model=APIResponse[QuizResult])
def submit_quiz(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    submission: QuizSubmission,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    attempt = progress_service.submit_quiz(
        db, user_id=context.user.id, lesson_id=lesson_id, answers=submission.answers
    )
    grade = attempt.grade
    return APIResponse(
        message="Quiz passed" if grade.passed else "Quiz not passed",
        data=QuizResult(
            score=grade.score,
            correct_answers=grade.correct_answers,
            total_questions=grade.total_questions,
            passed=grade.passed,
        )
    )
