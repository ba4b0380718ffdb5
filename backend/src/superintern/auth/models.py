"""Profile, point ledger and webhook bookkeeping models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from superintern.storage.models import Base


class Profile(Base):
    """Intern (or admin) profile.

    Exactly one profile exists per identity of the external auth provider;
    ``user_id`` is that identity id.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)

    # Identity
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    # Contact / background
    phone_number = Column(String(50), nullable=True)
    github_url = Column(String(500), nullable=True)
    resume_url = Column(String(500), nullable=True)
    location = Column(String(255), nullable=True)
    university = Column(String(255), nullable=True)
    major = Column(String(255), nullable=True)
    graduation_year = Column(Integer, nullable=True)

    # Rewards
    points = Column(Integer, default=0, nullable=False)

    # Status
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    point_transactions = relationship("PointTransaction", back_populates="profile")

    def __repr__(self):
        return f"<Profile(user_id={self.user_id}, email={self.email}, admin={self.is_admin})>"

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class PointTransaction(Base):
    """Point ledger entry."""
    __tablename__ = "point_transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), ForeignKey("profiles.user_id"), nullable=False, index=True)

    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(50), nullable=False)  # task_approved, referral_reward, adjustment
    reference = Column(String(100), nullable=True)  # e.g. "task:12", "referral:3"

    created_at = Column(DateTime, default=datetime.utcnow)

    profile = relationship("Profile", back_populates="point_transactions")

    def __repr__(self):
        return f"<PointTransaction(user={self.user_id}, amount={self.amount}, reason={self.reason})>"


class ProcessedWebhookEvent(Base):
    """Tracks processed webhook events for idempotency."""
    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)  # e.g. "user.created"
    source = Column(String(50), nullable=False)  # e.g. "clerk"
    processed_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ProcessedWebhookEvent(id={self.event_id}, type={self.event_type})>"
