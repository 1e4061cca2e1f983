import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.constants import CourseStatusEnum, EnrollmentStatusEnum, PaymentStatusEnum
from app.core.exceptions import AlreadyEnrolled, NotFound
from app.crud.course import course as crud_course
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.user import user as crud_user
from app.crud.user_stats import user_stats as crud_user_stats
from app.models.enrollment import Enrollment
from app.schemas.enrollment import EnrollmentCreate
from app.services.enrollment_state import EnrollmentStateMachine, enrollment_state_machine

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Enrollment creation plus the payment/approval edges of the lifecycle."""

    def __init__(self, clock: Clock = system_clock, state_machine: Optional[EnrollmentStateMachine] = None):
        self.clock = clock
        self.state_machine = state_machine or enrollment_state_machine

    def request_enrollment(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        if crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id):
            raise AlreadyEnrolled()

        course = crud_course.get(db, id=course_id)
        if not course or course.status != CourseStatusEnum.PUBLISHED:
            raise NotFound("Course not found or not available")

        if course.is_free:
            status, payment_status = EnrollmentStatusEnum.ACTIVE, PaymentStatusEnum.PAID
        else:
            status, payment_status = EnrollmentStatusEnum.PENDING, PaymentStatusEnum.PENDING

        enrollment = self._insert(db, user_id, course_id, status, payment_status)
        logger.info(f"User {user_id} requested enrollment in course {course_id}: {status.value}")
        return enrollment

    def create_enrollment(self, db: Session, enrollment_in: EnrollmentCreate) -> Enrollment:
        """Manual enrollment by an administrator."""
        if not crud_user.get(db, id=enrollment_in.user_id):
            raise NotFound("User not found")
        if not crud_course.get(db, id=enrollment_in.course_id):
            raise NotFound("Course not found")
        if crud_enrollment.get_by_user_and_course(
            db, user_id=enrollment_in.user_id, course_id=enrollment_in.course_id
        ):
            raise AlreadyEnrolled("User already enrolled in this course")

        enrollment = self._insert(
            db,
            enrollment_in.user_id,
            enrollment_in.course_id,
            enrollment_in.status,
            enrollment_in.payment_status,
            expires_at=enrollment_in.expires_at,
        )
        logger.info(
            f"Admin enrolled user {enrollment_in.user_id} in course {enrollment_in.course_id} "
            f"as {enrollment_in.status.value}"
        )
        return enrollment

    def _insert(self, db: Session, user_id, course_id, status, payment_status, expires_at=None) -> Enrollment:
        inserted = crud_enrollment.insert_if_absent(
            db,
            values={
                "user_id": user_id,
                "course_id": course_id,
                "status": status,
                "payment_status": payment_status,
                "progress": 0,
                "enrolled_at": self.clock.now(),
                "expires_at": expires_at,
            },
            conflict_columns=("user_id", "course_id"),
        )
        if not inserted:
            raise AlreadyEnrolled()
        if status == EnrollmentStatusEnum.ACTIVE:
            crud_course.increment_students_count(db, course_id)
        crud_user_stats.ensure(db, user_id)
        return crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)

    def approve(self, db: Session, enrollment_id: int) -> Enrollment:
        enrollment = self._get_or_raise(db, enrollment_id)
        self.state_machine.activate(
            db, enrollment, self.clock.now(), extra={"payment_status": PaymentStatusEnum.PAID}
        )
        crud_course.increment_students_count(db, enrollment.course_id)
        return enrollment

    def reject(self, db: Session, enrollment_id: int) -> Enrollment:
        enrollment = self._get_or_raise(db, enrollment_id)
        return self.state_machine.cancel(db, enrollment, self.clock.now())

    def update_payment_status(self, db: Session, enrollment_id: int, payment_status: PaymentStatusEnum) -> Enrollment:
        enrollment = self._get_or_raise(db, enrollment_id)
        updated = crud_enrollment.update(
            db, db_obj=enrollment, obj_in={"payment_status": payment_status, "updated_at": self.clock.now()}
        )
        logger.info(f"Enrollment {enrollment_id} payment status set to {payment_status.value}")
        return updated

    def get_for_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
        return crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)

    def get_user_enrollments(self, db: Session, user_id: int) -> List[Enrollment]:
        return crud_enrollment.get_by_user(db, user_id=user_id)

    def _get_or_raise(self, db: Session, enrollment_id: int) -> Enrollment:
        enrollment = crud_enrollment.get(db, id=enrollment_id)
        if not enrollment:
            raise NotFound("Enrollment not found")
        return enrollment


enrollment_service = EnrollmentService()
