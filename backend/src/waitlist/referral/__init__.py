"""Referral module for the June waitlist.

- Every verified user gets one unique code (``JUNE-XXXXXX``)
- Signing up with someone's code credits them once the new email is verified
"""

from waitlist.referral.codes import ReferralCodeGenerator, normalize_code
from waitlist.referral.tracker import ReferralTracker

__all__ = ["ReferralCodeGenerator", "ReferralTracker", "normalize_code"]
