from enum import Enum


CERTIFICATE_PREFIX = "CERT"

class RoleEnum(str, Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"

class CourseStatusEnum(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class LessonTypeEnum(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"

class DripTypeEnum(str, Enum):
    IMMEDIATE = "immediate"
    DAYS_AFTER_ENROLLMENT = "days_after_enrollment"
    FIXED_DATE = "fixed_date"

class EnrollmentStatusEnum(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class PaymentStatusEnum(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

class BadgeTypeEnum(str, Enum):
    COMPLETION = "completion"
    STREAK = "streak"
    ACHIEVEMENT = "achievement"
    MILESTONE = "milestone"
