"""Referral program database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from superintern.storage.models import Base


class ReferralStatus(str, Enum):
    """Lifecycle of a referral record."""
    PENDING = "pending"        # Referred user signed up
    COMPLETED = "completed"    # Task threshold reached, referrer credited


class ReferralCode(Base):
    """Referral code owned by a user.

    One code per user; the unique index on ``user_id`` is the conflict key
    used when a code is issued.
    """
    __tablename__ = "referral_codes"
    __table_args__ = (
        Index("ix_referral_codes_user_id", "user_id", unique=True),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), ForeignKey("profiles.user_id"), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ReferralCode(code={self.code}, user={self.user_id})>"


class ReferralVisit(Base):
    """Anonymous visit to a referral link, recorded before signup."""
    __tablename__ = "referral_visits"

    id = Column(Integer, primary_key=True)
    referral_code = Column(String(20), nullable=False, index=True)
    visitor_ip = Column(String(64), nullable=False, default="unknown")
    user_agent = Column(String(500), nullable=False, default="unknown")
    converted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<ReferralVisit(code={self.referral_code}, converted={self.converted})>"


class Referral(Base):
    """Link between a referrer and the user who signed up with their code.

    Tracks reward progress: the referrer is credited once the referred user
    has completed enough tasks.
    """
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True)
    referrer_id = Column(String(64), ForeignKey("profiles.user_id"), nullable=False, index=True)
    referred_user_id = Column(String(64), ForeignKey("profiles.user_id"), nullable=False, unique=True)
    referral_code = Column(String(20), nullable=False)

    # Reward progress
    status = Column(String(20), default=ReferralStatus.PENDING.value, nullable=False)
    completed_task_count = Column(Integer, default=0, nullable=False)
    points_awarded = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Referral(referrer={self.referrer_id}, referred={self.referred_user_id}, status={self.status})>"
