import re
from datetime import timedelta

from app.core.constants import RoleEnum
from app.crud.user_stats import user_stats as crud_user_stats


def _give_points(db_session, user, points):
    stats = crud_user_stats.lock_or_create(db_session, user.id)
    stats.points = points
    db_session.flush()


def test_daily_login(client, frozen_clock, user_factory, auth_headers):
    print("\n[TEST] Daily login")
    user = user_factory()

    first = client.post("/gamification/daily-login", headers=auth_headers(user))
    second = client.post("/gamification/daily-login", headers=auth_headers(user))

    assert first.status_code == 200
    assert first.json()["data"]["points_awarded"] == 5
    assert first.json()["data"]["stats"]["current_streak"] == 1
    assert second.json()["data"]["points_awarded"] == 0
    assert second.json()["data"]["stats"]["points"] == 5
    print("[OK] Daily bonus awarded once")


def test_daily_login_reports_new_badges(client, frozen_clock, db_session, user_factory, default_badges,
                                        auth_headers):
    user = user_factory()
    stats = crud_user_stats.lock_or_create(db_session, user.id)
    stats.current_streak = 6
    stats.longest_streak = 6
    stats.last_activity_date = frozen_clock.today() - timedelta(days=1)
    db_session.flush()

    response = client.post("/gamification/daily-login", headers=auth_headers(user))

    assert response.json()["data"]["badges_awarded"] == ["Week on Fire"]


def test_stats(client, frozen_clock, user_factory, course_with_lessons, enrollment_factory, auth_headers):
    user = user_factory()
    course, lessons = course_with_lessons(1)
    enrollment_factory(user, course)
    client.post(f"/lessons/{lessons[0].id}/complete", headers=auth_headers(user))

    response = client.get("/gamification/stats", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["totalCoursesEnrolled"] == 1
    assert data["completedCourses"] == 1
    assert data["currentStreak"] == 1
    assert data["points"] == 115


def test_badge_catalog_and_earned_badges(client, frozen_clock, user_factory, course_with_lessons,
                                         enrollment_factory, default_badges, auth_headers):
    user = user_factory()
    course, lessons = course_with_lessons(2)
    enrollment_factory(user, course)

    catalog = client.get("/gamification/badges", headers=auth_headers(user))
    assert catalog.status_code == 200
    assert len(catalog.json()["data"]) == len(default_badges)

    client.post(f"/lessons/{lessons[0].id}/complete", headers=auth_headers(user))
    earned = client.get("/gamification/badges/me", headers=auth_headers(user))

    assert [badge["name"] for badge in earned.json()["data"]] == ["First Step"]
    assert earned.json()["data"][0]["type"] == "completion"
    assert earned.json()["data"][0]["earned_at"].startswith("2026-03-10")


def test_certificate_claim_flow(client, frozen_clock, user_factory, course_with_lessons, enrollment_factory,
                                auth_headers):
    print("\n[TEST] Certificate claim")
    user = user_factory()
    course, lessons = course_with_lessons(1, title="Options Basics")
    enrollment_factory(user, course)
    headers = auth_headers(user)

    early = client.post(f"/courses/{course.id}/certificate/claim", headers=headers)
    assert early.status_code == 400
    assert early.json()["error"]["code"] == "NOT_COMPLETED"

    client.post(f"/lessons/{lessons[0].id}/complete", headers=headers)

    claimed = client.post(f"/courses/{course.id}/certificate/claim", headers=headers)
    assert claimed.status_code == 201
    assert re.match(r"^CERT-\d+-[0-9A-F]{8}$", claimed.json()["data"]["certificate_number"])

    again = client.post(f"/courses/{course.id}/certificate/claim", headers=headers)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "ALREADY_CLAIMED"

    certificates = client.get("/gamification/certificates", headers=headers).json()["data"]
    assert len(certificates) == 1
    assert certificates[0]["course_title"] == "Options Basics"
    print("[OK] Certificate issued once")


def test_leaderboard(client, db_session, user_factory, auth_headers):
    first = user_factory(name="First")
    second = user_factory(name="Second")
    admin = user_factory(name="Admin", role=RoleEnum.ADMIN)
    _give_points(db_session, first, 300)
    _give_points(db_session, second, 200)
    _give_points(db_session, admin, 1000)

    response = client.get("/gamification/leaderboard", params={"limit": 5}, headers=auth_headers(second))

    assert response.status_code == 200
    entries = response.json()["data"]
    assert [(e["name"], e["rank"]) for e in entries] == [("First", 1), ("Second", 2)]

    response = client.get("/gamification/leaderboard", params={"limit": 1}, headers=auth_headers(second))
    assert [e["name"] for e in response.json()["data"]] == ["First"]
