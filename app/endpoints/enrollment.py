from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.utils import deps
from app.schemas.user import UserContext
from app.schemas.enrollment import (
    Enrollment,
    EnrollmentCheck,
    EnrollmentCreate,
    PaymentStatusUpdate,
)
from app.services.enrollment import enrollment_service
from app.utils.permission import PermissionHelper as permission_helper

router = APIRouter()


@router.post("/courses/{course_id}/enroll", response_model=APIResponse[Enrollment], status_code=status.HTTP_201_CREATED)
def enroll_in_course(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = enrollment_service.request_enrollment(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Enrollment created", data=Enrollment.model_validate(enrollment))


@router.get("/courses/{course_id}/enrollment", response_model=APIResponse[EnrollmentCheck])
def check_enrollment(
    *,
    db: Session = Depends(deps.get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = enrollment_service.get_for_user_and_course(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(
        message="Enrollment status retrieved",
        data=EnrollmentCheck(
            enrolled=enrollment is not None,
            enrollment=Enrollment.model_validate(enrollment) if enrollment else None,
        )
    )


@router.get("/enrollments/me", response_model=APIResponse[List[Enrollment]])
def get_my_enrollments(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollments = enrollment_service.get_user_enrollments(db, user_id=context.user.id)
    return APIResponse(
        message="Your enrollments retrieved successfully",
        data=[Enrollment.model_validate(e) for e in enrollments]
    )


@router.post("/enrollments", response_model=APIResponse[Enrollment], status_code=status.HTTP_201_CREATED)
def create_enrollment(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_in: EnrollmentCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    permission_helper.require_admin(context)
    enrollment = enrollment_service.create_enrollment(db, enrollment_in=enrollment_in)
    return APIResponse(message="Enrollment created", data=Enrollment.model_validate(enrollment))


@router.post("/enrollments/{enrollment_id}/approve", response_model=APIResponse[Enrollment])
def approve_enrollment(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    permission_helper.require_admin(context)
    enrollment = enrollment_service.approve(db, enrollment_id=enrollment_id)
    return APIResponse(message="Enrollment approved", data=Enrollment.model_validate(enrollment))


@router.post("/enrollments/{enrollment_id}/reject", response_model=APIResponse[Enrollment])
def reject_enrollment(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    permission_helper.require_admin(context)
    enrollment = enrollment_service.reject(db, enrollment_id=enrollment_id)
    return APIResponse(message="Enrollment rejected", data=Enrollment.model_validate(enrollment))


@router.patch("/enrollments/{enrollment_id}/payment", response_model=APIResponse[Enrollment])
def update_payment_status(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_id: int,
    payment_in: PaymentStatusUpdate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    permission_helper.require_admin(context)
    enrollment = enrollment_service.update_payment_status(
        db, enrollment_id=enrollment_id, payment_status=payment_in.payment_status
    )
    return APIResponse(message="Payment status updated", data=Enrollment.model_validate(enrollment))
