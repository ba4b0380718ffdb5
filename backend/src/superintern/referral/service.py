"""Referral service: code issuance, visit tracking, signup attribution and rewards."""

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from superintern.auth.models import Profile
from superintern.auth.points import PointService
from superintern.auth.profiles import ProfileService
from superintern.logging_config import get_logger
from superintern.referral.models import Referral, ReferralCode, ReferralStatus, ReferralVisit
from superintern.settings import settings
from superintern.storage.db import Database
from superintern.storage.retry import store_retry

logger = get_logger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
MAX_CODE_ATTEMPTS = 3  # Fresh codes tried when a generated code is already taken

WARNING_INVALID_CODE = "Invalid referral code, but your account was created successfully."
WARNING_ADMIN_REFERRER = "Referral codes owned by admins do not earn rewards; no referral was recorded."
WARNING_SELF_REFERRAL = "You cannot use your own referral code."
WARNING_ALREADY_REFERRED = "This account has already been referred."
WARNING_RECORD_FAILED = "Your account was created, but there was an issue recording the referral."


class InvalidReferralCodeError(Exception):
    """Raised when a referral code does not belong to any user."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Invalid referral code: {code}")


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def generate_referral_code() -> str:
    """Generate a referral code.

    Format: 6 random base36 characters followed by the first 2 base36
    characters of the current millisecond timestamp, uppercase
    (e.g. ``K3F9QZLX``).
    """
    random_part = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    timestamp_part = _to_base36(int(time.time() * 1000))[:2]
    return f"{random_part}{timestamp_part}".upper()


def normalize_code(code: str | None) -> str:
    """Canonical form of a user-supplied code ("" when absent)."""
    return (code or "").strip().upper()


@dataclass
class SignupResult:
    """Outcome of a signup with an optional referral code."""
    profile: Profile
    referral: Referral | None = None
    converted_visit: ReferralVisit | None = None
    warnings: list[str] = field(default_factory=list)


class ReferralService:
    """Service for the referral program.

    Visit tracking -> signup attribution -> task-completion counting ->
    referrer reward. Secondary bookkeeping (duplicate-code clean-up, visit
    conversion) never blocks the primary action.
    """

    def __init__(
        self,
        db: Database,
        profile_service: ProfileService,
        point_service: PointService,
        tasks_required: int | None = None,
        reward_points: int | None = None,
        convert_unattributed_visits: bool | None = None,
    ):
        """Initialize referral service.

        Args:
            db: Database handle
            profile_service: Used to create the base profile on signup
            point_service: Used to credit referrers
            tasks_required: Completed tasks needed before the referrer is credited
            reward_points: Points credited to the referrer
            convert_unattributed_visits: Mark a visit converted even when the
                signup was not attributed to a referrer
        """
        self.db = db
        self.profiles = profile_service
        self.points = point_service
        self.tasks_required = tasks_required or settings.referral_tasks_required
        self.reward_points = reward_points or settings.referral_points
        self.convert_unattributed_visits = (
            settings.referral_convert_unattributed_visits
            if convert_unattributed_visits is None
            else convert_unattributed_visits
        )
        self.logger = get_logger(__name__)

    # ==================== CODES ====================

    def share_link(self, code: str) -> str:
        """Signup link carrying the referral code."""
        return f"{settings.site_url.rstrip('/')}/signup?ref={code}"

    def ensure_code(self, user_id: str) -> str | None:
        """Return the user's referral code, issuing one if absent.

        Args:
            user_id: Identity ID

        Returns:
            Referral code, or None if it could not be read or issued
        """
        try:
            existing = self._reconcile_codes(user_id)
            if existing:
                return existing

            for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
                code = generate_referral_code()
                try:
                    issued = self._issue_code(user_id, code)
                except IntegrityError as e:
                    self.logger.warning(
                        "referral_code_collision",
                        user_id=user_id,
                        attempt=attempt,
                        error=str(e.orig),
                    )
                    continue

                if issued:
                    return issued

            self.logger.error("referral_code_issue_failed", user_id=user_id, attempts=MAX_CODE_ATTEMPTS)
            return None

        except SQLAlchemyError as e:
            self.logger.error("referral_code_error", user_id=user_id, error=str(e))
            return None

    def _reconcile_codes(self, user_id: str) -> str | None:
        """Return the oldest code of a user and drop any others."""
        with self.db.session() as session:
            codes = session.query(ReferralCode).filter(
                ReferralCode.user_id == user_id
            ).order_by(ReferralCode.created_at.asc(), ReferralCode.id.asc()).all()

        if not codes:
            return None

        keep, extras = codes[0], codes[1:]
        if extras:
            try:
                self._delete_codes(user_id, [c.id for c in extras])
            except SQLAlchemyError as e:
                self.logger.warning(
                    "referral_code_cleanup_failed",
                    user_id=user_id,
                    duplicate_ids=[c.id for c in extras],
                    error=str(e),
                )

        return keep.code

    @store_retry("referral_code_cleanup")
    def _delete_codes(self, user_id: str, code_ids: list[int]) -> None:
        with self.db.session() as session:
            deleted = session.query(ReferralCode).filter(
                ReferralCode.id.in_(code_ids)
            ).delete(synchronize_session=False)
            session.commit()

        self.logger.info("referral_code_duplicates_removed", user_id=user_id, deleted=deleted)

    def _insert_code_statement(self, user_id: str, code: str):
        """INSERT that leaves an existing code of the same user untouched."""
        values = {"user_id": user_id, "code": code, "created_at": datetime.utcnow()}
        if self.db.dialect == "postgresql":
            return pg_insert(ReferralCode).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        if self.db.dialect == "sqlite":
            return sqlite_insert(ReferralCode).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        return insert(ReferralCode).values(**values)

    @store_retry("referral_code_issue")
    def _issue_code(self, user_id: str, code: str) -> str | None:
        """Insert a code for the user and return whichever code the user now owns.

        When a concurrent request won the race, its code is returned instead.
        """
        with self.db.session() as session:
            session.execute(self._insert_code_statement(user_id, code))
            session.commit()

            owned = session.query(ReferralCode.code).filter(
                ReferralCode.user_id == user_id
            ).order_by(ReferralCode.created_at.asc(), ReferralCode.id.asc()).first()

        if owned is None:
            return None

        if owned.code == code:
            self.logger.info("referral_code_created", user_id=user_id, code=code)
        return owned.code

    def lookup_referrer(self, code: str) -> tuple[ReferralCode, Profile] | None:
        """Find the code row and its owner's profile in one joined query.

        Args:
            code: Referral code (any case)

        Returns:
            (code row, owner profile) or None when the code is unknown
        """
        code = normalize_code(code)
        if not code:
            return None

        with self.db.session() as session:
            row = session.query(ReferralCode, Profile).join(
                Profile, Profile.user_id == ReferralCode.user_id
            ).filter(
                ReferralCode.code == code
            ).first()

        if row is None:
            return None
        return row[0], row[1]

    # ==================== VISITS ====================

    @store_retry("referral_visit_track")
    def track_visit(
        self,
        code: str,
        visitor_ip: str | None = None,
        user_agent: str | None = None,
    ) -> ReferralVisit:
        """Record an anonymous visit to a referral link.

        Args:
            code: Referral code from the link
            visitor_ip: Client address ("unknown" when absent)
            user_agent: Client user agent ("unknown" when absent)

        Returns:
            The inserted visit

        Raises:
            InvalidReferralCodeError: If no user owns the code
        """
        code = normalize_code(code)
        if self.lookup_referrer(code) is None:
            raise InvalidReferralCodeError(code)

        with self.db.session() as session:
            visit = ReferralVisit(
                referral_code=code,
                visitor_ip=visitor_ip or "unknown",
                user_agent=(user_agent or "unknown")[:500],
                converted=False,
            )
            session.add(visit)
            session.commit()
            session.refresh(visit)

        self.logger.info("referral_visit_tracked", code=code, visit_id=visit.id)
        return visit

    def mark_visit_converted(self, code: str) -> ReferralVisit | None:
        """Mark the oldest unconverted visit for a code as converted.

        Failures are logged and swallowed; signup must not depend on it.
        """
        try:
            return self._convert_oldest_visit(normalize_code(code))
        except SQLAlchemyError as e:
            self.logger.warning("referral_visit_conversion_failed", code=code, error=str(e))
            return None

    @store_retry("referral_visit_convert")
    def _convert_oldest_visit(self, code: str) -> ReferralVisit | None:
        with self.db.session() as session:
            visit = session.query(ReferralVisit).filter(
                ReferralVisit.referral_code == code,
                ReferralVisit.converted == False,  # noqa: E712
            ).order_by(
                ReferralVisit.created_at.asc(), ReferralVisit.id.asc()
            ).with_for_update().first()

            if visit is None:
                self.logger.info("referral_visit_none_to_convert", code=code)
                return None

            visit.converted = True
            session.commit()

        self.logger.info("referral_visit_converted", code=code, visit_id=visit.id)
        return visit

    # ==================== SIGNUP ====================

    def record_signup(
        self,
        user_id: str,
        email: str,
        fields: dict[str, Any] | None = None,
        referral_code: str | None = None,
    ) -> SignupResult:
        """Create the base profile and attribute the signup to a referrer.

        The profile is created first and unconditionally. Problems with the
        referral (unknown code, admin referrer, store errors) become warnings
        on the result; they never undo the account creation.

        Args:
            user_id: Identity ID of the new user
            email: E-mail address of the new user
            fields: Additional profile fields
            referral_code: Optional code entered at signup

        Returns:
            SignupResult with the profile, the referral (if any) and warnings
        """
        profile, _ = self.profiles.upsert_profile(user_id, email, fields)
        result = SignupResult(profile=profile)

        code = normalize_code(referral_code)
        if not code:
            return result

        try:
            result.referral = self._attribute_signup(user_id, code, result.warnings)
        except SQLAlchemyError as e:
            self.logger.error("referral_record_failed", user_id=user_id, code=code, error=str(e))
            result.warnings.append(WARNING_RECORD_FAILED)

        if result.referral is not None or self.convert_unattributed_visits:
            result.converted_visit = self.mark_visit_converted(code)

        return result

    def _attribute_signup(self, user_id: str, code: str, warnings: list[str]) -> Referral | None:
        found = self.lookup_referrer(code)
        if found is None:
            self.logger.warning("referral_code_invalid", user_id=user_id, code=code)
            warnings.append(WARNING_INVALID_CODE)
            return None

        _, referrer = found
        if referrer.is_admin:
            self.logger.info("referral_skipped_admin_referrer", user_id=user_id, referrer_id=referrer.user_id)
            warnings.append(WARNING_ADMIN_REFERRER)
            return None

        if referrer.user_id == user_id:
            self.logger.info("referral_skipped_self", user_id=user_id)
            warnings.append(WARNING_SELF_REFERRAL)
            return None

        return self._create_referral(referrer.user_id, user_id, code, warnings)

    @store_retry("referral_record")
    def _create_referral(
        self,
        referrer_id: str,
        referred_user_id: str,
        code: str,
        warnings: list[str],
    ) -> Referral | None:
        with self.db.session() as session:
            existing = session.query(Referral).filter(
                Referral.referred_user_id == referred_user_id
            ).first()

            if existing:
                self.logger.info("referral_already_recorded", referred_user_id=referred_user_id)
                if WARNING_ALREADY_REFERRED not in warnings:
                    warnings.append(WARNING_ALREADY_REFERRED)
                return None

            referral = Referral(
                referrer_id=referrer_id,
                referred_user_id=referred_user_id,
                referral_code=code,
                status=ReferralStatus.PENDING.value,
                completed_task_count=0,
                points_awarded=False,
            )
            session.add(referral)
            session.commit()
            session.refresh(referral)

        self.logger.info(
            "referral_recorded",
            referral_id=referral.id,
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
        )
        return referral

    # ==================== REWARDS ====================

    @store_retry("referral_attribution")
    def attribute_task_completion(self, user_id: str) -> Referral | None:
        """Count a completed task towards the user's referral.

        Both steps are conditional UPDATEs. The counter only moves while the
        referral is unrewarded, and the reward flag flips at most once; the
        referrer is credited only by the transaction whose flip matched a row,
        in the same commit.

        Args:
            user_id: Identity ID of the user who completed a task

        Returns:
            The referral after the update, or None if the user was not referred
        """
        with self.db.session() as session:
            referral_id = session.query(Referral.id).filter(
                Referral.referred_user_id == user_id
            ).scalar()

            if referral_id is None:
                self.logger.debug("referral_not_found", user_id=user_id)
                return None

            counted = session.query(Referral).filter(
                Referral.id == referral_id,
                Referral.points_awarded == False,  # noqa: E712
            ).update(
                {Referral.completed_task_count: func.coalesce(Referral.completed_task_count, 0) + 1},
                synchronize_session=False,
            )

            rewarded = False
            if counted:
                rewarded = session.query(Referral).filter(
                    Referral.id == referral_id,
                    Referral.points_awarded == False,  # noqa: E712
                    Referral.completed_task_count >= self.tasks_required,
                ).update(
                    {
                        Referral.points_awarded: True,
                        Referral.status: ReferralStatus.COMPLETED.value,
                        Referral.completed_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                ) == 1

            referral = session.get(Referral, referral_id)
            if rewarded:
                self.points.credit_in_session(
                    session,
                    referral.referrer_id,
                    self.reward_points,
                    reason="referral_reward",
                    reference=f"referral:{referral_id}",
                )

            session.commit()

        if not counted:
            self.logger.info("referral_already_rewarded", referral_id=referral_id)
        elif rewarded:
            self.logger.info(
                "referral_rewarded",
                referral_id=referral_id,
                referrer_id=referral.referrer_id,
                points=self.reward_points,
            )
        else:
            self.logger.info(
                "referral_progress",
                referral_id=referral_id,
                completed=referral.completed_task_count,
                required=self.tasks_required,
            )
        return referral

    # ==================== STATS ====================

    def get_referral_stats(self, user_id: str) -> dict[str, Any]:
        """Referral dashboard data for a user.

        Args:
            user_id: Identity ID

        Returns:
            Dict with code, link, visit counts and the referred users
        """
        code = self.ensure_code(user_id)

        with self.db.session() as session:
            visits = conversions = 0
            if code:
                visits = session.query(func.count(ReferralVisit.id)).filter(
                    ReferralVisit.referral_code == code
                ).scalar() or 0
                conversions = session.query(func.count(ReferralVisit.id)).filter(
                    ReferralVisit.referral_code == code,
                    ReferralVisit.converted == True,  # noqa: E712
                ).scalar() or 0

            rows = session.query(Referral, Profile).outerjoin(
                Profile, Profile.user_id == Referral.referred_user_id
            ).filter(
                Referral.referrer_id == user_id
            ).order_by(Referral.created_at.desc(), Referral.id.desc()).all()

            referrals = [
                {
                    "id": referral.id,
                    "referred_user_id": referral.referred_user_id,
                    "name": profile.full_name if profile else None,
                    "email": profile.email if profile else None,
                    "status": referral.status,
                    "completed_task_count": referral.completed_task_count,
                    "tasks_required": self.tasks_required,
                    "points_awarded": referral.points_awarded,
                    "created_at": referral.created_at,
                }
                for referral, profile in rows
            ]

        rewarded = sum(1 for r in referrals if r["points_awarded"])
        return {
            "code": code,
            "link": self.share_link(code) if code else None,
            "visits": visits,
            "conversions": conversions,
            "referrals_count": len(referrals),
            "completed_referrals": rewarded,
            "points_earned": rewarded * self.reward_points,
            "referrals": referrals,
        }
