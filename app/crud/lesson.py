from sqlalchemy.orm import Session, joinedload
from typing import List, Optional

from app.crud.base import CRUDBase
from app.models.lesson import Lesson
from app.models.module import Module


class CRUDLesson(CRUDBase[Lesson, dict, dict]):

    def get(self, db: Session, id: int) -> Optional[Lesson]:
        return (
            db.query(Lesson)
            .options(joinedload(Lesson.module))
            .filter(Lesson.id == id)
            .first()
        )

    def get_by_course(self, db: Session, course_id: int) -> List[Lesson]:
        return (
            db.query(Lesson)
            .join(Module, Lesson.module_id == Module.id)
            .filter(Module.course_id == course_id)
            .order_by(Module.order, Lesson.order)
            .all()
        )

    def count_by_course(self, db: Session, course_id: int) -> int:
        return (
            db.query(Lesson)
            .join(Module, Lesson.module_id == Module.id)
            .filter(Module.course_id == course_id)
            .count()
        )


lesson = CRUDLesson(Lesson)
