from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime

from app.crud.base import CRUDBase
from app.models.badge import Badge, UserBadge
from app.core.constants import BadgeTypeEnum


class CRUDBadge(CRUDBase[Badge, dict, dict]):

    def get_all(self, db: Session) -> List[Badge]:
        return db.query(Badge).order_by(Badge.type, Badge.requirement).all()

    def get_highest_within(self, db: Session, badge_type: BadgeTypeEnum, requirement: int) -> Optional[Badge]:
        return (
            db.query(Badge)
            .filter(Badge.type == badge_type)
            .filter(Badge.requirement <= requirement)
            .order_by(Badge.requirement.desc(), Badge.id)
            .first()
        )

    def get_all_within(self, db: Session, badge_type: BadgeTypeEnum, requirement: int) -> List[Badge]:
        return (
            db.query(Badge)
            .filter(Badge.type == badge_type)
            .filter(Badge.requirement <= requirement)
            .order_by(Badge.requirement)
            .all()
        )


class CRUDUserBadge(CRUDBase[UserBadge, dict, dict]):

    def award(self, db: Session, user_id: int, badge_id: int, earned_at: datetime) -> bool:
        """Insert-if-absent on (user_id, badge_id). Returns True only for a new award."""
        return self.insert_if_absent(
            db,
            values={"user_id": user_id, "badge_id": badge_id, "earned_at": earned_at},
            conflict_columns=("user_id", "badge_id"),
        )

    def get_by_user(self, db: Session, user_id: int) -> List[Tuple[Badge, datetime]]:
        return (
            db.query(Badge, UserBadge.earned_at)
            .join(UserBadge, UserBadge.badge_id == Badge.id)
            .filter(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc())
            .all()
        )

    def count_by_user(self, db: Session, user_id: int) -> int:
        return db.query(UserBadge).filter(UserBadge.user_id == user_id).count()


badge = CRUDBadge(Badge)
user_badge = CRUDUserBadge(UserBadge)
