import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from app.core.constants import EnrollmentStatusEnum
from app.core.exceptions import InvalidTransition
from app.crud.enrollment import enrollment as crud_enrollment
from app.models.enrollment import Enrollment

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[EnrollmentStatusEnum, FrozenSet[EnrollmentStatusEnum]] = {
    EnrollmentStatusEnum.PENDING: frozenset({EnrollmentStatusEnum.ACTIVE, EnrollmentStatusEnum.CANCELLED}),
    EnrollmentStatusEnum.ACTIVE: frozenset({EnrollmentStatusEnum.COMPLETED}),
    EnrollmentStatusEnum.COMPLETED: frozenset(),
    EnrollmentStatusEnum.CANCELLED: frozenset(),
}


def can_transition(current: EnrollmentStatusEnum, target: EnrollmentStatusEnum) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class EnrollmentStateMachine:
    """The only place enrollment status changes.

    Each transition is one conditional UPDATE guarded by the expected current
    status, so two concurrent callers cannot both apply the same edge.
    """

    def transition(
        self,
        db: Session,
        enrollment: Enrollment,
        target: EnrollmentStatusEnum,
        now: datetime,
        extra: Optional[dict] = None,
    ) -> Enrollment:
        current = EnrollmentStatusEnum(enrollment.status)
        if not can_transition(current, target):
            logger.warning(
                f"Rejected enrollment {enrollment.id} transition {current.value} -> {target.value}"
            )
            raise InvalidTransition(
                f"Cannot change enrollment from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
            )

        values = {"status": target, "updated_at": now}
        if target == EnrollmentStatusEnum.COMPLETED:
            values["completed_at"] = now
        if extra:
            values.update(extra)

        changed = crud_enrollment.conditional_update(
            db,
            Enrollment.id == enrollment.id,
            Enrollment.status == current,
            values=values,
        )
        db.refresh(enrollment)
        if changed != 1:
            logger.warning(
                f"Enrollment {enrollment.id} changed concurrently; now {enrollment.status.value}"
            )
            raise InvalidTransition(
                f"Enrollment is no longer {current.value}",
                current=EnrollmentStatusEnum(enrollment.status).value,
                target=target.value,
            )

        logger.info(f"Enrollment {enrollment.id} moved {current.value} -> {target.value}")
        return enrollment

    def activate(self, db: Session, enrollment: Enrollment, now: datetime, extra: Optional[dict] = None) -> Enrollment:
        return self.transition(db, enrollment, EnrollmentStatusEnum.ACTIVE, now, extra)

    def cancel(self, db: Session, enrollment: Enrollment, now: datetime) -> Enrollment:
        return self.transition(db, enrollment, EnrollmentStatusEnum.CANCELLED, now)

    def complete(self, db: Session, enrollment: Enrollment, now: datetime) -> Enrollment:
        return self.transition(db, enrollment, EnrollmentStatusEnum.COMPLETED, now)


enrollment_state_machine = EnrollmentStateMachine()
