from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime

from app.crud.base import CRUDBase
from app.models.certificate import Certificate
from app.models.course import Course


class CRUDCertificate(CRUDBase[Certificate, dict, dict]):

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[Certificate]:
        return (
            db.query(Certificate)
            .filter(Certificate.user_id == user_id)
            .filter(Certificate.course_id == course_id)
            .first()
        )

    def issue(self, db: Session, user_id: int, course_id: int, certificate_number: str, issued_at: datetime) -> bool:
        """Insert guarded by the (user_id, course_id) unique key. False means another row won."""
        return self.insert_if_absent(
            db,
            values={
                "user_id": user_id,
                "course_id": course_id,
                "certificate_number": certificate_number,
                "issued_at": issued_at,
            },
            conflict_columns=("user_id", "course_id"),
        )

    def get_by_user_with_course(self, db: Session, user_id: int) -> List[Tuple[Certificate, Course]]:
        return (
            db.query(Certificate, Course)
            .join(Course, Certificate.course_id == Course.id)
            .filter(Certificate.user_id == user_id)
            .order_by(Certificate.issued_at.desc())
            .all()
        )

    def count_by_user(self, db: Session, user_id: int) -> int:
        return db.query(Certificate).filter(Certificate.user_id == user_id).count()


certificate = CRUDCertificate(Certificate)
