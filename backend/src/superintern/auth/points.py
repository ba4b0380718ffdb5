"""Point balance management for SuperIntern."""

from datetime import datetime

from sqlalchemy.orm import Session

from superintern.auth.models import PointTransaction, Profile
from superintern.logging_config import get_logger
from superintern.storage.db import Database
from superintern.storage.retry import store_retry

logger = get_logger(__name__)


class PointService:
    """Service for managing user point balances.

    Balances are only ever changed with a server-side increment
    (``points = points + :amount``) so concurrent awards cannot overwrite
    each other. Every change leaves a ledger row.
    """

    def __init__(self, db: Database):
        """Initialize point service."""
        self.db = db
        self.logger = get_logger(__name__)

    def get_balance(self, user_id: str) -> int:
        """Get user's point balance.

        Args:
            user_id: Identity ID

        Returns:
            Point balance (0 for unknown users)
        """
        with self.db.session() as session:
            profile = session.query(Profile).filter(
                Profile.user_id == user_id
            ).first()

            if not profile:
                return 0

            return profile.points

    def credit_in_session(
        self,
        session: Session,
        user_id: str,
        amount: int,
        reason: str,
        reference: str | None = None,
    ) -> PointTransaction:
        """Credit points inside an open transaction.

        Used when the credit has to commit or roll back together with another
        change (task approval, referral completion).

        Args:
            session: Open session; the caller commits
            user_id: Identity ID of the receiving user
            amount: Points to add (positive)
            reason: Ledger reason
            reference: Optional ledger reference

        Returns:
            Ledger entry
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")

        updated = session.query(Profile).filter(
            Profile.user_id == user_id
        ).update(
            {Profile.points: Profile.points + amount, Profile.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
        if not updated:
            raise ValueError(f"Profile {user_id} not found")

        new_balance = session.query(Profile.points).filter(
            Profile.user_id == user_id
        ).scalar()

        transaction = PointTransaction(
            user_id=user_id,
            amount=amount,
            balance_after=new_balance,
            reason=reason,
            reference=reference,
        )
        session.add(transaction)
        session.flush()

        self.logger.info(
            "points_credited",
            user_id=user_id,
            amount=amount,
            reason=reason,
            new_balance=new_balance,
        )
        return transaction

    @store_retry("points_add")
    def add_points(
        self,
        user_id: str,
        amount: int,
        reason: str = "adjustment",
        reference: str | None = None,
    ) -> PointTransaction:
        """Add points to a user's balance in its own transaction.

        Args:
            user_id: Identity ID
            amount: Points to add (positive)
            reason: Ledger reason
            reference: Optional ledger reference

        Returns:
            Ledger entry
        """
        with self.db.session() as session:
            transaction = self.credit_in_session(session, user_id, amount, reason, reference)
            session.commit()
            return transaction

    def get_history(self, user_id: str, limit: int = 50) -> list[PointTransaction]:
        """Get recent ledger entries for a user, newest first."""
        with self.db.session() as session:
            return session.query(PointTransaction).filter(
                PointTransaction.user_id == user_id
            ).order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc()).limit(limit).all()
