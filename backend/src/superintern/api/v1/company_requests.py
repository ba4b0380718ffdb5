"""Public intake for corporate internship requests."""

from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from superintern.api.rate_limit import COMPANY_REQUEST_LIMIT, limiter
from superintern.companies.models import CompanyRequest
from superintern.services import Services, get_services

router = APIRouter(prefix="/company-requests", tags=["company-requests"])


# ==================== MODELS ====================


class CompanyRequestCreate(BaseModel):
    """Form submitted by a company looking for interns."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    company_name: str = Field(..., alias="companyName", min_length=1, max_length=255)
    email: EmailStr
    positions: int = Field(..., ge=1, le=1000)
    requirements: str = Field(..., min_length=1, max_length=10000)


class CompanyRequestResponse(BaseModel):
    """A stored company request."""
    id: int
    company_name: str
    email: str
    positions: int
    requirements: str
    created_at: datetime | None = None


def company_request_response(row: CompanyRequest) -> CompanyRequestResponse:
    return CompanyRequestResponse(
        id=row.id,
        company_name=row.company_name,
        email=row.email,
        positions=row.positions,
        requirements=row.requirements,
        created_at=row.created_at,
    )


# ==================== ENDPOINTS ====================


@router.post("", response_model=CompanyRequestResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(COMPANY_REQUEST_LIMIT)
def submit_company_request(
    request: Request,
    body: CompanyRequestCreate,
    services: Services = Depends(get_services),
):
    """Submit an internship request from the public site."""
    row = services.company_requests.submit(
        body.company_name,
        body.email,
        body.positions,
        body.requirements,
    )
    return company_request_response(row)
