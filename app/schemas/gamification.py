from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date, datetime

from app.core.constants import BadgeTypeEnum


class UserStats(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    total_watch_time: int
    current_streak: int
    longest_streak: int
    points: int
    last_activity_date: Optional[date] = None


class DailyActivityResult(BaseModel):
    stats: UserStats
    points_awarded: int
    badges_awarded: List[str] = []


class Badge(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    type: BadgeTypeEnum
    requirement: int


class EarnedBadge(Badge):
    earned_at: datetime


class Certificate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    certificate_number: str
    issued_at: datetime
    download_url: Optional[str] = None


class CertificateWithCourse(Certificate):
    course_title: str
    course_thumbnail: Optional[str] = None


class LeaderboardEntry(BaseModel):
    user_id: int
    name: str
    avatar: Optional[str] = None
    points: int
    current_streak: int
    certificates_count: int
    rank: int


class GamificationStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_courses_enrolled: int
    completed_courses: int
    total_watch_time: int
    current_streak: int
    longest_streak: int
    total_badges: int
    total_certificates: int
    points: int
