"""Corporate internship requests submitted from the public site."""

from superintern.companies.models import CompanyRequest
from superintern.companies.service import CompanyRequestService

__all__ = [
    "CompanyRequest",
    "CompanyRequestService",
]
