import re
from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.constants import BadgeTypeEnum, EnrollmentStatusEnum, RoleEnum
from app.core.exceptions import AlreadyClaimed, NotCompleted
from app.crud.badge import badge as crud_badge, user_badge as crud_user_badge
from app.crud.certificate import certificate as crud_certificate
from app.crud.user_stats import user_stats as crud_user_stats
from app.models.badge import UserBadge

CERTIFICATE_NUMBER = re.compile(r"^CERT-\d{13}-[0-9A-F]{8}$")


def _set_stats(db_session, user, **values):
    stats = crud_user_stats.lock_or_create(db_session, user.id)
    for field, value in values.items():
        setattr(stats, field, value)
    db_session.flush()
    return stats


def _badge_names(db_session, user):
    return sorted(badge.name for badge, _ in crud_user_badge.get_by_user(db_session, user.id))


class TestDailyActivity:
    def test_first_activity_starts_streak(self, db_session, services, user_factory):
        user = user_factory()

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert outcome.stats.current_streak == 1
        assert outcome.stats.longest_streak == 1
        assert outcome.stats.last_activity_date == services.clock.today()
        assert outcome.points_awarded == settings.DAILY_ACTIVITY_POINTS
        assert outcome.stats.points == settings.DAILY_ACTIVITY_POINTS

    def test_consecutive_day_increments_streak(self, db_session, services, user_factory):
        user = user_factory()
        _set_stats(db_session, user, current_streak=3, longest_streak=5,
                   last_activity_date=services.clock.today() - timedelta(days=1))

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert outcome.stats.current_streak == 4
        assert outcome.stats.longest_streak == 5
        assert outcome.points_awarded == settings.DAILY_ACTIVITY_POINTS

    def test_longest_streak_follows_new_record(self, db_session, services, user_factory):
        user = user_factory()
        _set_stats(db_session, user, current_streak=5, longest_streak=5,
                   last_activity_date=services.clock.today() - timedelta(days=1))

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert outcome.stats.current_streak == 6
        assert outcome.stats.longest_streak == 6

    def test_same_day_repeat_changes_nothing(self, db_session, services, user_factory):
        user = user_factory()
        services.gamification.record_daily_activity(db_session, user.id)
        services.clock.advance(hours=6)

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert outcome.points_awarded == 0
        assert outcome.stats.current_streak == 1
        assert outcome.stats.points == settings.DAILY_ACTIVITY_POINTS

    def test_gap_resets_streak(self, db_session, services, user_factory):
        user = user_factory()
        _set_stats(db_session, user, current_streak=12, longest_streak=12,
                   last_activity_date=services.clock.today() - timedelta(days=3))

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert outcome.stats.current_streak == 1
        assert outcome.stats.longest_streak == 12
        assert outcome.points_awarded == settings.DAILY_ACTIVITY_POINTS

    def test_reaching_seven_days_awards_streak_badge(self, db_session, services, user_factory, default_badges):
        user = user_factory()
        _set_stats(db_session, user, current_streak=6, longest_streak=6,
                   last_activity_date=services.clock.today() - timedelta(days=1))

        outcome = services.gamification.record_daily_activity(db_session, user.id)

        assert [b.name for b in outcome.badges_awarded] == ["Week on Fire"]


class TestBadges:
    def test_streak_badges_are_idempotent(self, db_session, services, user_factory, default_badges):
        user = user_factory()

        first = services.gamification.check_streak_badges(db_session, user.id, 7)
        second = services.gamification.check_streak_badges(db_session, user.id, 7)

        assert [b.name for b in first] == ["Week on Fire"]
        assert second == []
        week_badge = crud_badge.get_highest_within(db_session, BadgeTypeEnum.STREAK, 7)
        rows = (
            db_session.query(UserBadge)
            .filter(UserBadge.user_id == user.id, UserBadge.badge_id == week_badge.id)
            .count()
        )
        assert rows == 1

    def test_long_streak_awards_every_reached_milestone(self, db_session, services, user_factory, default_badges):
        user = user_factory()

        awarded = services.gamification.check_streak_badges(db_session, user.id, 45)

        assert [b.name for b in awarded] == ["Week on Fire", "Consistent Month"]

    def test_short_streak_awards_nothing(self, db_session, services, user_factory, default_badges):
        user = user_factory()
        assert services.gamification.check_streak_badges(db_session, user.id, 6) == []

    def test_completion_badges_follow_lesson_count(self, db_session, services, user_factory, course_with_lessons,
                                                   enrollment_factory, default_badges):
        user = user_factory()
        course, lessons = course_with_lessons(3)
        enrollment_factory(user, course)

        services.progress.complete_lesson(db_session, user.id, lessons[0].id)

        assert _badge_names(db_session, user) == ["First Step"]

    def test_course_completion_awards_achievement(self, db_session, services, user_factory, course_with_lessons,
                                                  enrollment_factory, default_badges):
        user = user_factory()
        course, lessons = course_with_lessons(1)
        enrollment_factory(user, course)

        services.progress.complete_lesson(db_session, user.id, lessons[0].id)

        assert _badge_names(db_session, user) == ["First Step", "Graduate"]

    def test_milestone_badges_follow_points(self, db_session, services, user_factory):
        user = user_factory()
        crud_badge.create(db_session, obj_in={
            "name": "High Scorer", "type": BadgeTypeEnum.MILESTONE, "requirement": 100,
        })
        _set_stats(db_session, user, points=150)

        awarded = services.gamification.check_milestone_badges(db_session, user.id)

        assert [b.name for b in awarded] == ["High Scorer"]


class TestCertificates:
    def test_claim_after_completion(self, db_session, services, user_factory, course_factory, enrollment_factory):
        user = user_factory()
        course = course_factory()
        enrollment_factory(user, course, status=EnrollmentStatusEnum.COMPLETED)

        certificate = services.gamification.claim_certificate(db_session, user.id, course.id)

        assert CERTIFICATE_NUMBER.match(certificate.certificate_number)
        assert certificate.issued_at == services.clock.now()
        assert certificate.user_id == user.id
        assert certificate.course_id == course.id

    def test_second_claim_is_rejected(self, db_session, services, user_factory, course_factory, enrollment_factory):
        user = user_factory()
        course = course_factory()
        enrollment_factory(user, course, status=EnrollmentStatusEnum.COMPLETED)
        services.gamification.claim_certificate(db_session, user.id, course.id)

        with pytest.raises(AlreadyClaimed):
            services.gamification.claim_certificate(db_session, user.id, course.id)

        assert crud_certificate.count_by_user(db_session, user.id) == 1

    @pytest.mark.parametrize("status", [
        EnrollmentStatusEnum.ACTIVE,
        EnrollmentStatusEnum.PENDING,
        EnrollmentStatusEnum.CANCELLED,
    ])
    def test_claim_before_completion_is_rejected(self, db_session, services, user_factory, course_factory,
                                                 enrollment_factory, status):
        user = user_factory()
        course = course_factory()
        enrollment_factory(user, course, status=status)

        with pytest.raises(NotCompleted):
            services.gamification.claim_certificate(db_session, user.id, course.id)

    def test_claim_without_enrollment_is_rejected(self, db_session, services, user_factory, course_factory):
        with pytest.raises(NotCompleted):
            services.gamification.claim_certificate(db_session, user_factory().id, course_factory().id)

    def test_lost_insert_race_reports_already_claimed(self, db_session, services, user_factory, course_factory,
                                                      enrollment_factory, monkeypatch):
        user = user_factory()
        course = course_factory()
        enrollment_factory(user, course, status=EnrollmentStatusEnum.COMPLETED)
        monkeypatch.setattr(crud_certificate, "issue", lambda *args, **kwargs: False)

        with pytest.raises(AlreadyClaimed):
            services.gamification.claim_certificate(db_session, user.id, course.id)

    def test_certificate_numbers_are_unique(self, services):
        numbers = {services.gamification.generate_certificate_number() for _ in range(50)}
        assert len(numbers) == 50

    def test_completion_only_signals_eligibility_by_default(self, db_session, services, user_factory,
                                                             course_with_lessons, enrollment_factory):
        user = user_factory()
        course, lessons = course_with_lessons(1)
        enrollment_factory(user, course)

        services.progress.complete_lesson(db_session, user.id, lessons[0].id)

        assert crud_certificate.get_by_user_and_course(db_session, user.id, course.id) is None

    def test_auto_issue_on_completion(self, db_session, services, user_factory, course_with_lessons,
                                      enrollment_factory, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_ISSUE_CERTIFICATES", True)
        user = user_factory()
        course, lessons = course_with_lessons(1)
        enrollment_factory(user, course)

        services.progress.complete_lesson(db_session, user.id, lessons[0].id)

        certificate = crud_certificate.get_by_user_and_course(db_session, user.id, course.id)
        assert certificate is not None
        with pytest.raises(AlreadyClaimed):
            services.gamification.claim_certificate(db_session, user.id, course.id)


class TestLeaderboard:
    def test_ordered_by_points_with_positional_rank(self, db_session, services, user_factory):
        alice = user_factory(name="Alice")
        bob = user_factory(name="Bob")
        carol = user_factory(name="Carol")
        admin = user_factory(name="Admin", role=RoleEnum.ADMIN)
        _set_stats(db_session, alice, points=50)
        _set_stats(db_session, bob, points=120)
        _set_stats(db_session, carol, points=50)
        _set_stats(db_session, admin, points=999)

        leaderboard = services.gamification.get_leaderboard(db_session, limit=10)

        assert [entry.user_id for entry in leaderboard] == [bob.id, alice.id, carol.id]
        assert [entry.rank for entry in leaderboard] == [1, 2, 3]
        assert [entry.points for entry in leaderboard] == [120, 50, 50]
        assert all(entry.certificates_count == 0 for entry in leaderboard)

    def test_limit_is_respected(self, db_session, services, user_factory):
        for points in (10, 20, 30):
            _set_stats(db_session, user_factory(), points=points)

        leaderboard = services.gamification.get_leaderboard(db_session, limit=2)

        assert [entry.points for entry in leaderboard] == [30, 20]

    def test_limit_is_clamped(self, db_session, services, user_factory, monkeypatch):
        monkeypatch.setattr(settings, "LEADERBOARD_MAX_LIMIT", 2)
        for points in (10, 20, 30):
            _set_stats(db_session, user_factory(), points=points)

        assert len(services.gamification.get_leaderboard(db_session, limit=500)) == 2
        assert len(services.gamification.get_leaderboard(db_session, limit=-5)) == 1

    def test_counts_certificates(self, db_session, services, user_factory, course_factory, enrollment_factory):
        user = user_factory()
        course = course_factory()
        enrollment_factory(user, course, status=EnrollmentStatusEnum.COMPLETED)
        services.gamification.claim_certificate(db_session, user.id, course.id)
        _set_stats(db_session, user, points=10)

        entry = services.gamification.get_leaderboard(db_session)[0]

        assert entry.certificates_count == 1
        assert entry.name == user.name


def test_stats_summary(db_session, services, user_factory, course_with_lessons, enrollment_factory):
    user = user_factory()
    course, lessons = course_with_lessons(1)
    other, _ = course_with_lessons(1)
    enrollment_factory(user, course)
    enrollment_factory(user, other, status=EnrollmentStatusEnum.CANCELLED)
    services.progress.complete_lesson(db_session, user.id, lessons[0].id)

    stats = services.gamification.get_stats(db_session, user.id)

    assert stats.total_courses_enrolled == 1
    assert stats.completed_courses == 1
    assert stats.current_streak == 1
    assert stats.points == (
        settings.LESSON_COMPLETION_POINTS + settings.COURSE_COMPLETION_POINTS + settings.DAILY_ACTIVITY_POINTS
    )
    assert stats.total_certificates == 0


def test_stats_for_new_user_are_zero(db_session, services, user_factory):
    stats = services.gamification.get_stats(db_session, user_factory().id)
    assert stats.points == 0
    assert stats.total_badges == 0
