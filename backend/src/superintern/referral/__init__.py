"""Referral program: codes, visits, attribution and rewards."""

from superintern.referral.models import Referral, ReferralCode, ReferralStatus, ReferralVisit
from superintern.referral.service import InvalidReferralCodeError, ReferralService, SignupResult

__all__ = [
    "Referral",
    "ReferralCode",
    "ReferralStatus",
    "ReferralVisit",
    "ReferralService",
    "SignupResult",
    "InvalidReferralCodeError",
]
