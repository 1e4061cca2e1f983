from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.course import Course
from app.models.module import Module


class CRUDCourse(CRUDBase[Course, dict, dict]):

    def increment_students_count(self, db: Session, course_id: int) -> None:
        self.conditional_update(
            db, Course.id == course_id,
            values={"students_count": Course.students_count + 1}
        )


class CRUDModule(CRUDBase[Module, dict, dict]):
    pass


course = CRUDCourse(Course)
module = CRUDModule(Module)
