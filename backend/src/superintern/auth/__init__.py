"""Profiles, points and identity for SuperIntern."""

from superintern.auth.models import PointTransaction, ProcessedWebhookEvent, Profile
from superintern.auth.points import PointService
from superintern.auth.profiles import ProfileError, ProfileNotFoundError, ProfileService
from superintern.auth.tokens import Identity, SessionTokenService

__all__ = [
    "Profile",
    "PointTransaction",
    "ProcessedWebhookEvent",
    "PointService",
    "ProfileService",
    "ProfileError",
    "ProfileNotFoundError",
    "Identity",
    "SessionTokenService",
]
