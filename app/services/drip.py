"""Drip scheduling: decides when a lesson becomes available to an enrolled learner.

Granularity is the calendar day: a lesson whose unlock moment falls on
today's date is already unlocked, even if that moment is later today.
Anything that cannot be interpreted as a known policy stays locked.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from app.core.clock import to_naive_utc
from app.core.constants import DripTypeEnum
from app.schemas.lesson import DripPolicy, ImmediateDrip, DaysAfterEnrollmentDrip, FixedDateDrip

logger = logging.getLogger(__name__)

_policy_adapter = TypeAdapter(DripPolicy)

AnyDripPolicy = Union[ImmediateDrip, DaysAfterEnrollmentDrip, FixedDateDrip]


def policy_from_lesson(lesson) -> Optional[AnyDripPolicy]:
    """Build the typed policy from a lesson's drip columns, or None if malformed."""
    drip_type = lesson.drip_type.value if isinstance(lesson.drip_type, DripTypeEnum) else lesson.drip_type
    raw = {"type": drip_type}
    if drip_type == DripTypeEnum.DAYS_AFTER_ENROLLMENT.value:
        raw["days"] = lesson.drip_days
    elif drip_type == DripTypeEnum.FIXED_DATE.value:
        raw["date"] = lesson.drip_date
    try:
        return _policy_adapter.validate_python(raw)
    except ValidationError:
        logger.warning(f"Lesson {getattr(lesson, 'id', None)} has a malformed drip policy: {raw}")
        return None


def unlock_date(policy: Optional[AnyDripPolicy], enrolled_at: datetime) -> Optional[datetime]:
    if isinstance(policy, DaysAfterEnrollmentDrip):
        try:
            return to_naive_utc(enrolled_at) + timedelta(days=policy.days)
        except OverflowError:
            logger.warning(f"Drip offset of {policy.days} days is past the supported date range")
            return None
    if isinstance(policy, FixedDateDrip):
        return to_naive_utc(policy.date)
    return None


def is_unlocked(policy: Optional[AnyDripPolicy], enrolled_at: datetime, now: datetime) -> bool:
    if isinstance(policy, ImmediateDrip):
        return True
    unlock_at = unlock_date(policy, enrolled_at)
    if unlock_at is None:
        return False
    return unlock_at.date() <= to_naive_utc(now).date()


def days_until_unlock(policy: Optional[AnyDripPolicy], enrolled_at: datetime, now: datetime) -> int:
    unlock_at = unlock_date(policy, enrolled_at)
    if unlock_at is None:
        return 0
    return max(0, (unlock_at.date() - _as_date(now)).days)


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    return value
