import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.constants import BadgeTypeEnum, CERTIFICATE_PREFIX, EnrollmentStatusEnum
from app.core.exceptions import AlreadyClaimed, NotCompleted
from app.crud.badge import badge as crud_badge, user_badge as crud_user_badge
from app.crud.certificate import certificate as crud_certificate
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.user_stats import user_stats as crud_user_stats
from app.models.badge import Badge
from app.models.certificate import Certificate
from app.models.user_stats import UserStats
from app.schemas.gamification import (
    CertificateWithCourse,
    EarnedBadge,
    GamificationStats,
    LeaderboardEntry,
)

logger = logging.getLogger(__name__)


@dataclass
class DailyActivityOutcome:
    stats: UserStats
    points_awarded: int
    badges_awarded: List[Badge] = field(default_factory=list)


class GamificationService:

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    def record_daily_activity(self, db: Session, user_id: int) -> DailyActivityOutcome:
        """Advance the streak for today's activity and award the daily bonus once per day."""
        today = self.clock.today()
        yesterday = today - timedelta(days=1)

        stats = crud_user_stats.lock_or_create(db, user_id)
        last = stats.last_activity_date
        points = 0

        if last == yesterday:
            stats.current_streak += 1
        elif last == today:
            pass
        else:
            stats.current_streak = 1
        stats.longest_streak = max(stats.longest_streak, stats.current_streak)

        if last is None or last < today:
            points = settings.DAILY_ACTIVITY_POINTS
            stats.points += points

        stats.last_activity_date = today
        db.flush()

        badges = self.check_streak_badges(db, user_id, stats.current_streak)
        badges += self.check_milestone_badges(db, user_id)
        db.refresh(stats)
        return DailyActivityOutcome(stats=stats, points_awarded=points, badges_awarded=badges)

    def check_streak_badges(self, db: Session, user_id: int, current_streak: int) -> List[Badge]:
        awarded = []
        for milestone in settings.STREAK_MILESTONES:
            if current_streak < milestone:
                continue
            badge = crud_badge.get_highest_within(db, BadgeTypeEnum.STREAK, milestone)
            if badge and self._award(db, user_id, badge):
                awarded.append(badge)
        return awarded

    def check_completion_badges(self, db: Session, user_id: int) -> List[Badge]:
        """Lesson-count badges and course-count (achievement) badges."""
        lessons_completed = crud_lesson_progress.count_completed_by_user(db, user_id)
        courses_completed = crud_enrollment.count_by_user_and_status(
            db, user_id, EnrollmentStatusEnum.COMPLETED
        )
        candidates = crud_badge.get_all_within(db, BadgeTypeEnum.COMPLETION, lessons_completed)
        candidates += crud_badge.get_all_within(db, BadgeTypeEnum.ACHIEVEMENT, courses_completed)
        return [b for b in candidates if self._award(db, user_id, b)]

    def check_milestone_badges(self, db: Session, user_id: int) -> List[Badge]:
        stats = crud_user_stats.get(db, user_id)
        if not stats:
            return []
        candidates = crud_badge.get_all_within(db, BadgeTypeEnum.MILESTONE, stats.points)
        return [b for b in candidates if self._award(db, user_id, b)]

    def _award(self, db: Session, user_id: int, badge: Badge) -> bool:
        awarded = crud_user_badge.award(db, user_id=user_id, badge_id=badge.id, earned_at=self.clock.now())
        if awarded:
            logger.info(f"User {user_id} earned badge '{badge.name}' ({badge.type.value} {badge.requirement})")
        return awarded

    def on_course_completed(self, db: Session, user_id: int, course_id: int) -> Optional[Certificate]:
        """Certificate-eligibility hook, run once when an enrollment reaches completed."""
        self.check_completion_badges(db, user_id)
        self.check_milestone_badges(db, user_id)
        if not settings.AUTO_ISSUE_CERTIFICATES:
            logger.info(f"User {user_id} is eligible for a certificate for course {course_id}")
            return None
        if crud_certificate.get_by_user_and_course(db, user_id, course_id):
            return None
        return self._issue_certificate(db, user_id, course_id)

    def claim_certificate(self, db: Session, user_id: int, course_id: int) -> Certificate:
        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if not enrollment or enrollment.status != EnrollmentStatusEnum.COMPLETED:
            raise NotCompleted()

        if crud_certificate.get_by_user_and_course(db, user_id, course_id):
            raise AlreadyClaimed()

        return self._issue_certificate(db, user_id, course_id)

    def _issue_certificate(self, db: Session, user_id: int, course_id: int) -> Certificate:
        issued = crud_certificate.issue(
            db,
            user_id=user_id,
            course_id=course_id,
            certificate_number=self.generate_certificate_number(),
            issued_at=self.clock.now(),
        )
        if not issued:
            # a concurrent claim inserted first
            raise AlreadyClaimed()

        certificate = crud_certificate.get_by_user_and_course(db, user_id, course_id)
        logger.info(
            f"Issued certificate {certificate.certificate_number} to user {user_id} for course {course_id}"
        )
        return certificate

    def generate_certificate_number(self) -> str:
        epoch_millis = int(self.clock.now().replace(tzinfo=timezone.utc).timestamp() * 1000)
        suffix = uuid.uuid4().hex[:8].upper()
        return f"{CERTIFICATE_PREFIX}-{epoch_millis}-{suffix}"

    def get_leaderboard(self, db: Session, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT
        limit = max(1, min(limit, settings.LEADERBOARD_MAX_LIMIT))
        rows = crud_user_stats.get_leaderboard_rows(db, limit=limit)
        return [
            LeaderboardEntry(
                user_id=user.id,
                name=user.name,
                avatar=user.avatar,
                points=stats.points,
                current_streak=stats.current_streak,
                certificates_count=certificates_count or 0,
                rank=position,
            )
            for position, (user, stats, certificates_count) in enumerate(rows, start=1)
        ]

    def get_stats(self, db: Session, user_id: int) -> GamificationStats:
        stats = crud_user_stats.get(db, user_id)
        return GamificationStats(
            total_courses_enrolled=crud_enrollment.count_by_user(
                db, user_id, exclude_status=EnrollmentStatusEnum.CANCELLED
            ),
            completed_courses=crud_enrollment.count_by_user_and_status(
                db, user_id, EnrollmentStatusEnum.COMPLETED
            ),
            total_watch_time=stats.total_watch_time if stats else 0,
            current_streak=stats.current_streak if stats else 0,
            longest_streak=stats.longest_streak if stats else 0,
            total_badges=crud_user_badge.count_by_user(db, user_id),
            total_certificates=crud_certificate.count_by_user(db, user_id),
            points=stats.points if stats else 0,
        )

    def get_badges(self, db: Session) -> List[Badge]:
        return crud_badge.get_all(db)

    def get_user_badges(self, db: Session, user_id: int) -> List[EarnedBadge]:
        return [
            EarnedBadge(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                type=badge.type,
                requirement=badge.requirement,
                earned_at=earned_at,
            )
            for badge, earned_at in crud_user_badge.get_by_user(db, user_id)
        ]

    def get_user_certificates(self, db: Session, user_id: int) -> List[CertificateWithCourse]:
        return [
            CertificateWithCourse(
                id=cert.id,
                user_id=cert.user_id,
                course_id=cert.course_id,
                certificate_number=cert.certificate_number,
                issued_at=cert.issued_at,
                download_url=cert.download_url,
                course_title=course.title,
                course_thumbnail=course.thumbnail,
            )
            for cert, course in crud_certificate.get_by_user_with_course(db, user_id)
        ]


gamification_service = GamificationService()
