from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.core.constants import EnrollmentStatusEnum, PaymentStatusEnum


class EnrollmentCreate(BaseModel):
    user_id: int
    course_id: int
    status: EnrollmentStatusEnum = EnrollmentStatusEnum.ACTIVE
    payment_status: PaymentStatusEnum = PaymentStatusEnum.PAID
    expires_at: Optional[datetime] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatusEnum


class Enrollment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    status: EnrollmentStatusEnum
    payment_status: PaymentStatusEnum
    progress: Decimal
    enrolled_at: datetime
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class EnrollmentCheck(BaseModel):
    enrolled: bool
    enrollment: Optional[Enrollment] = None
