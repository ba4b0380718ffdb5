"""Corporate internship request intake and listing."""

from superintern.companies.models import CompanyRequest
from superintern.logging_config import get_logger
from superintern.storage.db import Database
from superintern.storage.retry import store_retry

logger = get_logger(__name__)


class CompanyRequestService:
    """Stores requests from the public form and lists them for admins."""

    def __init__(self, db: Database):
        self.db = db
        self.logger = get_logger(__name__)

    @store_retry("company_request_submit")
    def submit(self, company_name: str, email: str, positions: int, requirements: str) -> CompanyRequest:
        """Store a new request.

        Args:
            company_name: Requesting company
            email: Contact address
            positions: Number of interns wanted (at least 1)
            requirements: Free-text description of the roles

        Returns:
            The stored request
        """
        if positions < 1:
            raise ValueError("At least one position is required")

        with self.db.session() as session:
            request = CompanyRequest(
                company_name=company_name.strip(),
                email=email.strip().lower(),
                positions=positions,
                requirements=requirements.strip(),
            )
            session.add(request)
            session.commit()
            session.refresh(request)

        self.logger.info(
            "company_request_submitted",
            request_id=request.id,
            company=request.company_name,
            positions=positions,
        )
        return request

    def list_requests(self, limit: int = 200) -> list[CompanyRequest]:
        """Requests, newest first."""
        with self.db.session() as session:
            return session.query(CompanyRequest).order_by(
                CompanyRequest.created_at.desc(), CompanyRequest.id.desc()
            ).limit(limit).all()
