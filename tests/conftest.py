import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from app.core.clock import FixedClock
from app.core.constants import (
    BadgeTypeEnum,
    CourseStatusEnum,
    EnrollmentStatusEnum,
    LessonTypeEnum,
    PaymentStatusEnum,
    RoleEnum,
)
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.crud.badge import badge as crud_badge
from app.crud.course import course as crud_course, module as crud_module
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.user import user as crud_user
from app.schemas.lesson import LessonCreate
from app.services.enrollment import EnrollmentService, enrollment_service
from app.services.enrollment_state import EnrollmentStateMachine
from app.services.gamification import GamificationService, gamification_service
from app.services.progress import ProgressService, progress_service
from app.utils import deps as deps_utils

NOW = datetime(2026, 3, 10, 12, 0, 0)

DEFAULT_BADGES = [
    ("First Step", BadgeTypeEnum.COMPLETION, 1),
    ("Dedicated", BadgeTypeEnum.COMPLETION, 10),
    ("Marathoner", BadgeTypeEnum.COMPLETION, 50),
    ("Week on Fire", BadgeTypeEnum.STREAK, 7),
    ("Consistent Month", BadgeTypeEnum.STREAK, 30),
    ("Centurion", BadgeTypeEnum.STREAK, 100),
    ("Graduate", BadgeTypeEnum.ACHIEVEMENT, 1),
    ("Collector", BadgeTypeEnum.ACHIEVEMENT, 5),
]


@pytest.fixture(scope="session")
def database_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()

@pytest.fixture
def clock():
    return FixedClock(NOW)

@pytest.fixture
def services(clock):
    """Service graph wired to a fixed clock."""
    state_machine = EnrollmentStateMachine()
    gamification = GamificationService(clock)
    progress = ProgressService(clock, gamification, state_machine)
    enrollment = EnrollmentService(clock, state_machine)

    class Services:
        pass

    wired = Services()
    wired.clock = clock
    wired.state_machine = state_machine
    wired.gamification = gamification
    wired.progress = progress
    wired.enrollment = enrollment
    return wired

@pytest.fixture
def frozen_clock(monkeypatch, clock):
    """Pins the clock used by the request-handling service singletons."""
    monkeypatch.setattr(progress_service, "clock", clock)
    monkeypatch.setattr(gamification_service, "clock", clock)
    monkeypatch.setattr(enrollment_service, "clock", clock)
    return clock

@pytest.fixture
def default_badges(db_session):
    return [
        crud_badge.create(db_session, obj_in={
            "name": name,
            "description": f"{name} badge",
            "type": badge_type,
            "requirement": requirement,
        })
        for name, badge_type, requirement in DEFAULT_BADGES
    ]


@pytest.fixture
def user_factory(db_session):
    def _user_factory(role=RoleEnum.STUDENT, name="Test User", is_active=True):
        return crud_user.create(db_session, obj_in={
            "name": name,
            "email": f"user-{uuid.uuid4()}@test.com",
            "role": role,
            "is_active": is_active,
        })
    return _user_factory

@pytest.fixture
def course_factory(db_session):
    def _course_factory(price=0, status=CourseStatusEnum.PUBLISHED, title="Test Course"):
        return crud_course.create(db_session, obj_in={
            "title": title,
            "status": status,
            "price": price,
            "students_count": 0,
        })
    return _course_factory

@pytest.fixture
def module_factory(db_session):
    def _module_factory(course, order=0, title="Module"):
        return crud_module.create(db_session, obj_in={
            "course_id": course.id,
            "title": title,
            "order": order,
        })
    return _module_factory

@pytest.fixture
def lesson_factory(db_session):
    def _lesson_factory(module, order=0, lesson_type=LessonTypeEnum.VIDEO, content=None, drip=None, duration=10):
        lesson_in = LessonCreate(
            module_id=module.id,
            title=f"Lesson {order}",
            lesson_type=lesson_type,
            content=content,
            duration=duration,
            order=order,
            drip=drip or {"type": "immediate"},
        )
        return crud_lesson.create(db_session, obj_in=lesson_in.to_columns())
    return _lesson_factory

@pytest.fixture
def enrollment_factory(db_session):
    def _enrollment_factory(user, course, status=EnrollmentStatusEnum.ACTIVE, enrolled_at=None,
                            payment_status=PaymentStatusEnum.PAID):
        return crud_enrollment.create(db_session, obj_in={
            "user_id": user.id,
            "course_id": course.id,
            "status": status,
            "payment_status": payment_status,
            "progress": 0,
            "enrolled_at": enrolled_at or NOW - timedelta(days=1),
        })
    return _enrollment_factory

@pytest.fixture
def course_with_lessons(course_factory, module_factory, lesson_factory):
    """Published free course with one module and `count` immediate video lessons."""
    def _course_with_lessons(count=2, **course_kwargs):
        course = course_factory(**course_kwargs)
        module = module_factory(course)
        lessons = [lesson_factory(module, order=index) for index in range(count)]
        return course, lessons
    return _course_with_lessons

@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
