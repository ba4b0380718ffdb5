"""Shared fixtures: in-memory store, app, client and identity helpers."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from superintern.api.main import create_app
from superintern.auth.models import Profile
from superintern.referral.models import ReferralCode
from superintern.storage.db import Database


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.drop_tables()
    database.dispose()


@pytest.fixture
def app(db):
    return create_app(database=db)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_profile(services):
    """Create a profile; admins are promoted through the service."""

    def _make(user_id: str, email: str | None = None, is_admin: bool = False, **fields) -> Profile:
        email = email or f"{user_id}@example.com"
        profile, _ = services.profiles.upsert_profile(user_id, email, fields)
        if is_admin:
            profile = services.profiles.promote_admin(email)
        return profile

    return _make


@pytest.fixture
def auth_headers(services):
    """Bearer headers for an identity."""

    def _headers(user_id: str, email: str | None = None) -> dict[str, str]:
        token = services.tokens.create_access_token(user_id, email=email or f"{user_id}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def give_code(db):
    """Assign a fixed referral code to a user."""

    def _give(user_id: str, code: str, created_at: datetime | None = None) -> None:
        with db.session() as session:
            session.add(ReferralCode(user_id=user_id, code=code, created_at=created_at or datetime.utcnow()))
            session.commit()

    return _give
