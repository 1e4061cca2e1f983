from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.core.constants import DripTypeEnum
from app.schemas.lesson import DaysAfterEnrollmentDrip, FixedDateDrip, ImmediateDrip
from app.services import drip

ENROLLED_AT = datetime(2026, 3, 1, 10, 0, 0)


def _lesson(drip_type, days=None, date=None):
    return SimpleNamespace(id=1, drip_type=drip_type, drip_days=days, drip_date=date)


@pytest.mark.parametrize("now", [
    datetime(1999, 1, 1),
    ENROLLED_AT - timedelta(days=30),
    ENROLLED_AT,
    ENROLLED_AT + timedelta(days=365),
])
def test_immediate_is_always_unlocked(now):
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.IMMEDIATE))
    assert isinstance(policy, ImmediateDrip)
    assert drip.is_unlocked(policy, ENROLLED_AT, now) is True
    assert drip.unlock_date(policy, ENROLLED_AT) is None
    assert drip.days_until_unlock(policy, ENROLLED_AT, now) == 0


def test_days_after_enrollment_unlocks_on_the_calendar_day():
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=3))
    assert isinstance(policy, DaysAfterEnrollmentDrip)

    assert drip.is_unlocked(policy, ENROLLED_AT, datetime(2026, 3, 3, 23, 59)) is False
    # same day as the threshold counts even before 10:00
    assert drip.is_unlocked(policy, ENROLLED_AT, datetime(2026, 3, 4, 0, 0)) is True
    assert drip.is_unlocked(policy, ENROLLED_AT, datetime(2026, 4, 1)) is True
    assert drip.unlock_date(policy, ENROLLED_AT) == datetime(2026, 3, 4, 10, 0, 0)


def test_days_after_enrollment_with_zero_days_is_unlocked_at_enrollment():
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=0))
    assert drip.is_unlocked(policy, ENROLLED_AT, ENROLLED_AT) is True


def test_days_until_unlock_counts_calendar_days():
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=7))
    assert drip.days_until_unlock(policy, ENROLLED_AT, datetime(2026, 3, 5, 18, 0)) == 3
    assert drip.days_until_unlock(policy, ENROLLED_AT, datetime(2026, 3, 20)) == 0


def test_fixed_date_policy():
    release = datetime(2026, 6, 15, 15, 30)
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.FIXED_DATE, date=release))
    assert isinstance(policy, FixedDateDrip)

    assert drip.is_unlocked(policy, ENROLLED_AT, datetime(2026, 6, 14, 23, 0)) is False
    assert drip.is_unlocked(policy, ENROLLED_AT, datetime(2026, 6, 15, 8, 0)) is True
    assert drip.unlock_date(policy, ENROLLED_AT) == release
    assert drip.days_until_unlock(policy, ENROLLED_AT, datetime(2026, 6, 10)) == 5


@pytest.mark.parametrize("lesson", [
    _lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=None),
    _lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=-2),
    _lesson(DripTypeEnum.FIXED_DATE, date=None),
    _lesson(None),
    _lesson("weekly"),
])
def test_malformed_or_missing_policy_stays_locked(lesson):
    policy = drip.policy_from_lesson(lesson)
    assert policy is None
    assert drip.is_unlocked(policy, ENROLLED_AT, ENROLLED_AT + timedelta(days=1000)) is False
    assert drip.unlock_date(policy, ENROLLED_AT) is None
    assert drip.days_until_unlock(policy, ENROLLED_AT, ENROLLED_AT) == 0


def test_offset_past_the_calendar_range_stays_locked():
    policy = drip.policy_from_lesson(_lesson(DripTypeEnum.DAYS_AFTER_ENROLLMENT, days=3_000_000))
    assert isinstance(policy, DaysAfterEnrollmentDrip)

    assert drip.unlock_date(policy, ENROLLED_AT) is None
    assert drip.is_unlocked(policy, ENROLLED_AT, ENROLLED_AT + timedelta(days=1000)) is False
    assert drip.days_until_unlock(policy, ENROLLED_AT, ENROLLED_AT) == 0
