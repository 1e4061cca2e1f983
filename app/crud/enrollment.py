from sqlalchemy.orm import Session, selectinload
from typing import List, Optional, Tuple

from app.crud.base import CRUDBase
from app.models.enrollment import Enrollment
from app.models.lesson import Lesson
from app.models.module import Module
from app.core.constants import EnrollmentStatusEnum


class CRUDEnrollment(CRUDBase[Enrollment, dict, dict]):

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.course_id == course_id)
            .first()
        )

    def get_by_user_and_course_for_update(
        self, db: Session, user_id: int, course_id: int
    ) -> Optional[Enrollment]:
        """Row-locks the enrollment (SELECT ... FOR UPDATE) until the transaction ends."""
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.course_id == course_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_by_user(self, db: Session, user_id: int) -> List[Enrollment]:
        return (
            db.query(Enrollment)
            .options(selectinload(Enrollment.course))
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )

    def get_access_for_lesson(
        self, db: Session, user_id: int, lesson_id: int,
        statuses: Tuple[EnrollmentStatusEnum, ...] = (EnrollmentStatusEnum.ACTIVE,)
    ) -> Optional[Tuple[Enrollment, Lesson]]:
        """Enrollment joined through module -> course for the lesson, limited to the given statuses."""
        return (
            db.query(Enrollment, Lesson)
            .join(Module, Module.course_id == Enrollment.course_id)
            .join(Lesson, Lesson.module_id == Module.id)
            .filter(Enrollment.user_id == user_id)
            .filter(Lesson.id == lesson_id)
            .filter(Enrollment.status.in_(statuses))
            .first()
        )

    def count_by_user(self, db: Session, user_id: int, exclude_status: Optional[EnrollmentStatusEnum] = None) -> int:
        query = db.query(Enrollment).filter(Enrollment.user_id == user_id)
        if exclude_status is not None:
            query = query.filter(Enrollment.status != exclude_status)
        return query.count()

    def count_by_user_and_status(self, db: Session, user_id: int, status: EnrollmentStatusEnum) -> int:
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.status == status)
            .count()
        )


enrollment = CRUDEnrollment(Enrollment)
