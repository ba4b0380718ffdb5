"""Session tokens issued by the hosted auth provider."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from superintern.logging_config import get_logger
from superintern.settings import settings

logger = get_logger(__name__)

TOKEN_EXPIRE_HOURS = 1


@dataclass
class Identity:
    """Authenticated identity extracted from a session token."""
    user_id: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def first_name(self) -> str | None:
        metadata = self.claims.get("user_metadata") or {}
        return metadata.get("given_name") or metadata.get("first_name")

    @property
    def last_name(self) -> str | None:
        metadata = self.claims.get("user_metadata") or {}
        return metadata.get("family_name") or metadata.get("last_name")


class SessionTokenService:
    """Verify (and, for tooling, mint) provider session tokens.

    Tokens are HS256 JWTs signed with the provider's shared secret; ``sub``
    is the identity ID.
    """

    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        audience: str | None = None,
    ):
        self.secret = secret or settings.auth_jwt_secret
        self.algorithm = algorithm or settings.auth_jwt_algorithm
        self.audience = audience if audience is not None else settings.auth_jwt_audience
        self.logger = get_logger(__name__)

    def create_access_token(
        self,
        user_id: str,
        email: str | None = None,
        expires_delta: timedelta | None = None,
        user_metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a session token (CLI and tests; production tokens come from the provider).

        Args:
            user_id: Identity ID
            email: Optional e-mail claim
            expires_delta: Optional expiration time
            user_metadata: Optional profile claims (given_name, family_name)

        Returns:
            JWT token string
        """
        if expires_delta is None:
            expires_delta = timedelta(hours=TOKEN_EXPIRE_HOURS)

        payload: dict[str, Any] = {
            "sub": user_id,
            "email": email,
            "exp": datetime.utcnow() + expires_delta,
            "iat": datetime.utcnow(),
        }
        if self.audience:
            payload["aud"] = self.audience
        if user_metadata:
            payload["user_metadata"] = user_metadata

        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Identity | None:
        """Verify and decode a session token.

        Args:
            token: JWT token string

        Returns:
            Identity or None if the token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": bool(self.audience)},
            )
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        return Identity(user_id=str(user_id), email=payload.get("email"), claims=payload)
