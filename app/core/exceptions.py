from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class LearningError(HTTPException):
    """Expected, recoverable condition reported to the caller with a stable code."""
    status_code_default: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None, **context: Any):
        super().__init__(status_code=self.status_code_default, detail=detail or self.default_detail)
        self.context: Dict[str, Any] = context


class NotFound(LearningError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_detail = "Resource not found"


class Forbidden(LearningError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_detail = "You do not have permission to perform this action"


class AccessDenied(LearningError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "NO_ACCESS"
    default_detail = "No access to this lesson"


class LessonLocked(LearningError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "LESSON_LOCKED"
    default_detail = "Lesson not yet available"

    def __init__(self, unlock_date: Optional[datetime] = None, days_until_unlock: Optional[int] = None):
        super().__init__(
            unlock_date=unlock_date.isoformat() if unlock_date else None,
            days_until_unlock=days_until_unlock,
        )
        self.unlock_date = unlock_date
        self.days_until_unlock = days_until_unlock


class NotCompleted(LearningError):
    code = "NOT_COMPLETED"
    default_detail = "Course not completed yet"


class AlreadyClaimed(LearningError):
    code = "ALREADY_CLAIMED"
    default_detail = "Certificate already claimed"


class AlreadyEnrolled(LearningError):
    code = "ALREADY_ENROLLED"
    default_detail = "Already enrolled or enrollment pending"


class InvalidTransition(LearningError):
    status_code_default = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"
    default_detail = "Enrollment status change not allowed"


class NotAQuiz(LearningError):
    code = "NOT_A_QUIZ"
    default_detail = "Lesson is not a quiz"
