"""Authentication dependencies for FastAPI."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from superintern.auth.models import Profile
from superintern.auth.tokens import Identity
from superintern.logging_config import get_logger
from superintern.services import Services, get_services

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    services: Services = Depends(get_services),
) -> Identity | None:
    """Get the identity behind the bearer token.

    Args:
        request: FastAPI request
        credentials: Bearer token
        services: Service container

    Returns:
        Identity or None if no valid token was sent
    """
    if not credentials:
        return None

    identity = services.tokens.verify_token(credentials.credentials)
    if identity:
        # Store identity in request state for later use
        request.state.identity = identity

    return identity


def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity:
    """Require a valid session token - raises 401 otherwise.

    Used by endpoints that run before a profile exists (signup).
    """
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_current_profile(
    identity: Identity | None = Depends(get_identity),
    services: Services = Depends(get_services),
) -> Profile | None:
    """Profile of the authenticated identity, if both exist."""
    if not identity:
        return None
    return services.profiles.get_profile(identity.user_id)


def require_auth(
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
) -> Profile:
    """Require authentication and an existing profile.

    Raises:
        HTTPException: 401 if not authenticated, 404 if no profile exists yet
    """
    profile = services.profiles.get_profile(identity.user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )
    return profile


def require_active(profile: Profile = Depends(require_auth)) -> Profile:
    """Require a profile that has not been suspended.

    Raises:
        HTTPException: 403 if the account is suspended
    """
    if not profile.is_active:
        logger.info("suspended_user_blocked", user_id=profile.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )
    return profile


def require_admin(profile: Profile = Depends(require_active)) -> Profile:
    """Require admin privileges.

    Args:
        profile: Authenticated, active profile

    Returns:
        Admin profile

    Raises:
        HTTPException: 403 if not admin
    """
    if not profile.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return profile
