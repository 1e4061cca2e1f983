from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.schemas.response import APIResponse
from app.utils import deps
from app.schemas.user import UserContext
from app.schemas.gamification import (
    Badge,
    Certificate,
    CertificateWithCourse,
    DailyActivityResult,
    EarnedBadge,
    GamificationStats,
    LeaderboardEntry,
    UserStats,
)
from app.services.gamification import gamification_service

router = APIRouter()


@router.get("/gamification/stats", response_model=APIResponse[GamificationStats])
def get_my_stats(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stats = gamification_service.get_stats(db, user_id=context.user.id)
    return APIResponse(message="Stats retrieved successfully", data=stats)


@router.get("/gamification/badges", response_model=APIResponse[List[Badge]])
def get_all_badges(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    badges = gamification_service.get_badges(db)
    return APIResponse(message="Badges retrieved successfully", data=[Badge.model_validate(b) for b in badges])


@router.get("/gamification/badges/me", response_model=APIResponse[List[EarnedBadge]])
def get_my_badges(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    badges = gamification_service.get_user_badges(db, user_id=context.user.id)
    return APIResponse(message="Your badges retrieved successfully", data=badges)


@router.get("/gamification/certificates", response_model=APIResponse[List[CertificateWithCourse]])
def get_my_certificates(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    certificates = gamification_service.get_user_certificates(db, user_id=context.user.id)
    return APIResponse(message="Your certificates retrieved successfully", data=certificates)


@router.get("/gamification/leaderboard", response_model=APIResponse[List[LeaderboardEntry]])
def get_leaderboard(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    limit: Optional[int] = Query(None)
):
    leaderboard = gamification_service.get_leaderboard(db, limit=limit)
    return APIResponse(message="Leaderboard retrieved successfully", data=leaderboard)


@router.post("/gamification/daily-login", response_model=APIResponse[DailyActivityResult])
def record_daily_login(
    *,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    outcome = gamification_service.record_daily_activity(db, user_id=context.user.id)
    return APIResponse(
        message="Daily activity recorded",
        data=DailyActivityResult(
            stats=UserStats.model_validate(outcome.stats),
            points_awarded=outcome.points_awarded,
            badges_awarded=[b.name for b in outcome.badges_awarded],
        )
    )


@router.post(
    "/courses/{course_id}/certificate/claim",
    response_model=APIResponse[Certificate],
    status_code=status.HTTP_201_CREATED
)
def claim_certificate(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    certificate = gamification_service.claim_certificate(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Certificate issued successfully", data=Certificate.model_validate(certificate))
