"""Service container wired to one Database handle."""

from dataclasses import dataclass

from fastapi import Request

from superintern.auth.points import PointService
from superintern.auth.profiles import ProfileService
from superintern.auth.tokens import SessionTokenService
from superintern.auth.webhooks import IdentityWebhookService
from superintern.companies.service import CompanyRequestService
from superintern.referral.service import ReferralService
from superintern.storage.db import Database
from superintern.tasks.service import TaskService


@dataclass
class Services:
    """All services of one process, sharing a Database."""
    db: Database
    profiles: ProfileService
    points: PointService
    referrals: ReferralService
    tasks: TaskService
    tokens: SessionTokenService
    webhooks: IdentityWebhookService
    company_requests: CompanyRequestService


def build_services(db: Database) -> Services:
    """Build the service graph on top of a Database."""
    profiles = ProfileService(db)
    points = PointService(db)
    referrals = ReferralService(db, profiles, points)
    return Services(
        db=db,
        profiles=profiles,
        points=points,
        referrals=referrals,
        tasks=TaskService(db, points, referrals),
        tokens=SessionTokenService(),
        webhooks=IdentityWebhookService(db, profiles),
        company_requests=CompanyRequestService(db),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services
