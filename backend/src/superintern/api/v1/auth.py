"""Authentication API v1 endpoints.

Sessions are owned by the hosted identity provider; these endpoints run right
after the provider has issued a session token.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from superintern.api.rate_limit import SIGNUP_LIMIT, limiter
from superintern.api.v1.profile import ProfileResponse, profile_response
from superintern.auth.middleware import require_identity
from superintern.auth.profiles import ProfileError
from superintern.auth.tokens import Identity
from superintern.logging_config import get_logger
from superintern.services import Services, get_services

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ==================== MODELS ====================


class SignupRequest(BaseModel):
    """Profile data submitted with the signup form."""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr | None = None
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)
    phone_number: str | None = Field(default=None, alias="phoneNumber", max_length=50)
    github_url: str | None = Field(default=None, alias="githubUrl", max_length=500)
    resume_url: str | None = Field(default=None, alias="resumeUrl", max_length=500)
    location: str | None = Field(default=None, max_length=255)
    university: str | None = Field(default=None, max_length=255)
    major: str | None = Field(default=None, max_length=255)
    graduation_year: int | None = Field(default=None, alias="graduationYear", ge=1900, le=2100)
    referral_code: str | None = Field(default=None, alias="referralCode", max_length=32)


class ReferralSummary(BaseModel):
    """Referral recorded at signup."""
    id: int
    referrer_id: str
    referral_code: str
    status: str
    completed_task_count: int
    points_awarded: bool
    created_at: datetime | None = None


class SignupResponse(BaseModel):
    """Result of a signup."""
    profile: ProfileResponse
    referral: ReferralSummary | None = None
    visit_converted: bool = False
    warnings: list[str] = []


class CallbackRequest(BaseModel):
    """Optional claims forwarded by the client after the provider redirect."""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr | None = None
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)


class CallbackResponse(BaseModel):
    """Profile and referral code after login."""
    profile: ProfileResponse
    created: bool
    referral_code: str | None = None


# ==================== ENDPOINTS ====================


def _resolve_email(identity: Identity, email: str | None) -> str:
    resolved = identity.email or email
    if not resolved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email address is required",
        )
    return resolved


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SIGNUP_LIMIT)
def signup(
    request: Request,
    body: SignupRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    """Create the caller's profile and record an optional referral.

    An invalid or unusable referral code never fails the signup; the reason
    is returned in ``warnings``.
    """
    fields = body.model_dump(exclude_unset=True, exclude={"email", "referral_code"})

    try:
        result = services.referrals.record_signup(
            identity.user_id,
            _resolve_email(identity, body.email),
            fields,
            referral_code=body.referral_code,
        )
    except ProfileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        "signup_completed",
        user_id=identity.user_id,
        referred=result.referral is not None,
        warnings=len(result.warnings),
    )

    referral = None
    if result.referral is not None:
        referral = ReferralSummary(
            id=result.referral.id,
            referrer_id=result.referral.referrer_id,
            referral_code=result.referral.referral_code,
            status=result.referral.status,
            completed_task_count=result.referral.completed_task_count,
            points_awarded=result.referral.points_awarded,
            created_at=result.referral.created_at,
        )

    code = services.referrals.ensure_code(identity.user_id)

    return SignupResponse(
        profile=profile_response(result.profile, code),
        referral=referral,
        visit_converted=result.converted_visit is not None,
        warnings=result.warnings,
    )


@router.post("/callback", response_model=CallbackResponse)
def auth_callback(
    body: CallbackRequest | None = None,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    """Ensure the profile and the referral code exist after login.

    Names are only written when the provider (or the client) supplies them.
    """
    body = body or CallbackRequest()

    fields = {}
    first_name = identity.first_name or body.first_name
    last_name = identity.last_name or body.last_name
    if first_name:
        fields["first_name"] = first_name
    if last_name:
        fields["last_name"] = last_name

    existing = services.profiles.get_profile(identity.user_id)
    email = identity.email or body.email or (existing.email if existing else None)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email address is required",
        )

    try:
        profile, created = services.profiles.upsert_profile(identity.user_id, email, fields)
    except ProfileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    code = services.referrals.ensure_code(identity.user_id)
    if code is None:
        logger.warning("callback_referral_code_missing", user_id=identity.user_id)

    return CallbackResponse(
        profile=profile_response(profile, code),
        created=created,
        referral_code=code,
    )
