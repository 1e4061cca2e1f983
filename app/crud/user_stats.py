from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple

from app.crud.base import CRUDBase
from app.models.user_stats import UserStats
from app.models.user import User
from app.models.certificate import Certificate
from app.core.constants import RoleEnum


class CRUDUserStats(CRUDBase[UserStats, dict, dict]):

    def get(self, db: Session, user_id: int) -> Optional[UserStats]:
        return db.query(UserStats).filter(UserStats.user_id == user_id).first()

    def ensure(self, db: Session, user_id: int) -> None:
        self.insert_if_absent(
            db,
            values={
                "user_id": user_id,
                "total_watch_time": 0,
                "current_streak": 0,
                "longest_streak": 0,
                "points": 0,
            },
            conflict_columns=("user_id",),
        )

    def lock_or_create(self, db: Session, user_id: int) -> UserStats:
        self.ensure(db, user_id)
        return (
            db.query(UserStats)
            .filter(UserStats.user_id == user_id)
            .with_for_update()
            .populate_existing()
            .one()
        )

    def add(self, db: Session, user_id: int, points: int = 0, watch_minutes: int = 0) -> None:
        """Atomic increments; never read-modify-write in Python."""
        if not points and not watch_minutes:
            return
        self.ensure(db, user_id)
        self.conditional_update(
            db, UserStats.user_id == user_id,
            values={
                "points": UserStats.points + points,
                "total_watch_time": UserStats.total_watch_time + watch_minutes,
            },
        )

    def get_leaderboard_rows(self, db: Session, limit: int) -> List[Tuple[User, UserStats, int]]:
        certificates_count = (
            db.query(func.count(Certificate.id))
            .filter(Certificate.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        return (
            db.query(User, UserStats, certificates_count.label("certificates_count"))
            .join(UserStats, UserStats.user_id == User.id)
            .filter(User.role == RoleEnum.STUDENT)
            .order_by(UserStats.points.desc(), User.id.asc())
            .limit(limit)
            .all()
        )


user_stats = CRUDUserStats(UserStats)
