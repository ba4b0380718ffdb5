"""Profile management for interns and admins."""

from datetime import datetime
from typing import Any

from superintern.auth.models import Profile
from superintern.logging_config import get_logger
from superintern.storage.db import Database
from superintern.storage.retry import store_retry

logger = get_logger(__name__)

# Fields a user may set on their own profile
EDITABLE_FIELDS = (
    "first_name",
    "last_name",
    "phone_number",
    "github_url",
    "resume_url",
    "location",
    "university",
    "major",
    "graduation_year",
)


class ProfileError(Exception):
    """Profile operation error."""
    pass


class ProfileNotFoundError(ProfileError):
    """Raised when no profile exists for an identity."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Profile {user_id} not found")


class ProfileService:
    """Service for reading and maintaining profiles."""

    def __init__(self, db: Database):
        self.db = db
        self.logger = get_logger(__name__)

    def get_profile(self, user_id: str) -> Profile | None:
        """Get profile by identity ID."""
        with self.db.session() as session:
            return session.query(Profile).filter(
                Profile.user_id == user_id
            ).first()

    def get_by_email(self, email: str) -> Profile | None:
        """Get profile by e-mail address (case-insensitive)."""
        with self.db.session() as session:
            return session.query(Profile).filter(
                Profile.email == email.strip().lower()
            ).first()

    @store_retry("profile_upsert")
    def upsert_profile(
        self,
        user_id: str,
        email: str,
        fields: dict[str, Any] | None = None,
    ) -> tuple[Profile, bool]:
        """Create a profile or update an existing one.

        Only the keys present in ``fields`` are written, so identity syncs do
        not wipe data the intern entered themselves.

        Args:
            user_id: Identity ID
            email: E-mail address
            fields: Editable profile fields to set

        Returns:
            (profile, created)

        Raises:
            ProfileError: If the identity or e-mail is invalid
        """
        if not user_id:
            raise ProfileError("User ID is required")
        if not isinstance(email, str) or "@" not in email:
            raise ProfileError("Valid email address is required")

        values = {
            key: value for key, value in (fields or {}).items()
            if key in EDITABLE_FIELDS
        }

        with self.db.session() as session:
            profile = session.query(Profile).filter(
                Profile.user_id == user_id
            ).first()

            created = profile is None
            if created:
                profile = Profile(user_id=user_id, email=email.strip().lower(), points=0)
                session.add(profile)
            else:
                profile.email = email.strip().lower()
                profile.updated_at = datetime.utcnow()

            for key, value in values.items():
                setattr(profile, key, value or None)

            session.commit()
            session.refresh(profile)

            self.logger.info(
                "profile_created" if created else "profile_updated",
                user_id=user_id,
                fields=sorted(values),
            )
            return profile, created

    def list_profiles(self, include_admins: bool = False) -> list[Profile]:
        """List profiles, newest first."""
        with self.db.session() as session:
            query = session.query(Profile)
            if not include_admins:
                query = query.filter(Profile.is_admin == False)  # noqa: E712
            return query.order_by(Profile.created_at.desc(), Profile.id.desc()).all()

    @store_retry("profile_set_active")
    def set_active(self, user_id: str, is_active: bool) -> Profile:
        """Suspend or reactivate a user.

        Raises:
            ProfileNotFoundError: If the profile does not exist
        """
        with self.db.session() as session:
            profile = session.query(Profile).filter(
                Profile.user_id == user_id
            ).first()

            if not profile:
                raise ProfileNotFoundError(user_id)

            profile.is_active = is_active
            profile.updated_at = datetime.utcnow()
            session.commit()
            session.refresh(profile)

            self.logger.info("profile_active_changed", user_id=user_id, is_active=is_active)
            return profile

    @store_retry("profile_promote_admin")
    def promote_admin(self, email: str) -> Profile:
        """Grant admin rights to the profile with the given e-mail.

        Raises:
            ProfileError: If no profile uses that e-mail
        """
        with self.db.session() as session:
            profile = session.query(Profile).filter(
                Profile.email == email.strip().lower()
            ).first()

            if not profile:
                raise ProfileError(f"No profile with email {email}")

            profile.is_admin = True
            profile.updated_at = datetime.utcnow()
            session.commit()
            session.refresh(profile)

            self.logger.info("profile_promoted_admin", user_id=profile.user_id)
            return profile
