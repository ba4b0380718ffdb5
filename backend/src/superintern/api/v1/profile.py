"""Profile API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from superintern.auth.middleware import require_active, require_auth, require_identity
from superintern.auth.models import Profile
from superintern.auth.profiles import ProfileError
from superintern.auth.tokens import Identity
from superintern.logging_config import get_logger
from superintern.services import Services, get_services

logger = get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


# ==================== MODELS ====================


class ProfileResponse(BaseModel):
    """Profile of an intern or admin."""
    user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    github_url: str | None = None
    resume_url: str | None = None
    location: str | None = None
    university: str | None = None
    major: str | None = None
    graduation_year: int | None = None
    points: int
    is_admin: bool
    is_active: bool
    referral_code: str | None = None
    created_at: datetime | None = None


class ProfileUpdateRequest(BaseModel):
    """Editable profile fields; omitted fields are left unchanged."""
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


def profile_response(profile: Profile, referral_code: str | None = None) -> ProfileResponse:
    """Build the API representation of a profile."""
    return ProfileResponse(
        user_id=profile.user_id,
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        phone_number=profile.phone_number,
        github_url=profile.github_url,
        resume_url=profile.resume_url,
        location=profile.location,
        university=profile.university,
        major=profile.major,
        graduation_year=profile.graduation_year,
        points=profile.points or 0,
        is_admin=bool(profile.is_admin),
        is_active=bool(profile.is_active),
        referral_code=referral_code,
        created_at=profile.created_at,
    )


# ==================== ENDPOINTS ====================


@router.get("", response_model=ProfileResponse)
def get_profile(
    profile: Profile = Depends(require_auth),
    services: Services = Depends(get_services),
):
    """Get the caller's profile.

    Suspended users can still read their own profile.
    """
    code = services.referrals.ensure_code(profile.user_id) if profile.is_active else None
    return profile_response(profile, code)


@router.post("", response_model=ProfileResponse)
def upsert_profile(
    body: ProfileUpdateRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    """Create or update the caller's profile."""
    existing = services.profiles.get_profile(identity.user_id)
    if existing is not None and not existing.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )

    email = body.email or (existing.email if existing else None) or identity.email
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email address is required",
        )

    fields = body.model_dump(exclude_unset=True, exclude={"email"})
    try:
        profile, _ = services.profiles.upsert_profile(identity.user_id, email, fields)
    except ProfileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return profile_response(profile, services.referrals.ensure_code(profile.user_id))


@router.get("/points")
def get_point_history(
    profile: Profile = Depends(require_active),
    services: Services = Depends(get_services),
):
    """Point balance and the most recent ledger entries."""
    history = services.points.get_history(profile.user_id)
    return {
        "points": services.points.get_balance(profile.user_id),
        "transactions": [
            {
                "amount": entry.amount,
                "balance_after": entry.balance_after,
                "reason": entry.reason,
                "reference": entry.reference,
                "created_at": entry.created_at,
            }
            for entry in history
        ],
    }
