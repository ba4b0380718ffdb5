"""Referral API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from superintern.api.rate_limit import TRACK_VISIT_LIMIT, VALIDATE_CODE_LIMIT, limiter
from superintern.auth.middleware import require_active
from superintern.auth.models import Profile
from superintern.logging_config import get_logger
from superintern.referral.service import InvalidReferralCodeError, normalize_code
from superintern.services import Services, get_services

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class TrackVisitRequest(BaseModel):
    """Request to track a visit to a referral link."""
    model_config = ConfigDict(populate_by_name=True)

    referral_code: str | None = Field(default=None, alias="referralCode", max_length=32)


class VisitResponse(BaseModel):
    """A recorded referral visit."""
    id: int
    referral_code: str
    visitor_ip: str
    user_agent: str
    converted: bool
    created_at: datetime | None = None


class TrackVisitResponse(BaseModel):
    """Response from visit tracking."""
    success: bool
    message: str
    visit: VisitResponse


class ValidateCodeResponse(BaseModel):
    """Response from code validation."""
    valid: bool
    referrer_name: str | None = None


class ReferralCodeResponse(BaseModel):
    """Response with the caller's referral code."""
    code: str
    link: str


class ReferredUser(BaseModel):
    """A user the caller referred."""
    id: int
    referred_user_id: str
    name: str | None = None
    email: str | None = None
    status: str
    completed_task_count: int
    tasks_required: int
    points_awarded: bool
    created_at: datetime | None = None


class ReferralStatsResponse(BaseModel):
    """Response with referral statistics."""
    code: str | None = None
    link: str | None = None
    visits: int
    conversions: int
    referrals_count: int
    completed_referrals: int
    points_earned: int
    referrals: list[ReferredUser]


# ==================== ENDPOINTS ====================


def _client_ip(request: Request) -> str | None:
    """First hop of X-Forwarded-For, else X-Real-IP."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip")


@router.post("/track", response_model=TrackVisitResponse)
@limiter.limit(TRACK_VISIT_LIMIT)
def track_referral_visit(
    request: Request,
    body: TrackVisitRequest,
    services: Services = Depends(get_services),
):
    """Track a visit to a referral link.

    Called by the signup page when it is opened with ``?ref=CODE``.
    """
    code = normalize_code(body.referral_code)
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Referral code is required",
        )

    try:
        visit = services.referrals.track_visit(
            code,
            visitor_ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except InvalidReferralCodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid referral code",
        )
    except SQLAlchemyError as e:
        logger.error("referral_visit_insert_failed", code=code, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to track referral visit. Please try again.",
        )

    return TrackVisitResponse(
        success=True,
        message="Referral visit tracked",
        visit=VisitResponse(
            id=visit.id,
            referral_code=visit.referral_code,
            visitor_ip=visit.visitor_ip,
            user_agent=visit.user_agent,
            converted=visit.converted,
            created_at=visit.created_at,
        ),
    )


@router.get("/validate/{code}", response_model=ValidateCodeResponse)
@limiter.limit(VALIDATE_CODE_LIMIT)
def validate_referral_code(
    request: Request,
    code: str,
    services: Services = Depends(get_services),
):
    """Validate a referral code before signup.

    Only the referrer's first name is disclosed.
    """
    found = services.referrals.lookup_referrer(code)
    if not found:
        return ValidateCodeResponse(valid=False)

    _, referrer = found
    return ValidateCodeResponse(valid=True, referrer_name=referrer.first_name)


@router.get("/code", response_model=ReferralCodeResponse)
def get_referral_code(
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Get the caller's referral code, creating one if needed."""
    code = services.referrals.ensure_code(profile.user_id)
    if not code:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Your referral code is not available right now. Please refresh the page.",
        )

    return ReferralCodeResponse(code=code, link=services.referrals.share_link(code))


@router.get("/stats", response_model=ReferralStatsResponse)
def get_referral_stats(
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Get referral statistics for the caller.

    Includes visits on the share link, converted visits and the progress of
    every referred user towards the reward.
    """
    return ReferralStatsResponse(**services.referrals.get_referral_stats(profile.user_id))
