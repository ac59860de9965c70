"""
Conference domain models.

- PresentationType, AccommodationOption, SessionOption, InterestOption:
  catalogue options per vertical
- PricingConfig: priced line item checkout amounts are validated against
- RegistrationForm: applicant registration, linked to its PaymentRecord
"""

from conferences.models.catalogue import (
    AccommodationOption,
    InterestOption,
    PresentationType,
    PricingConfig,
    SessionOption,
)
from conferences.models.registration import RegistrationForm

__all__ = [
    "AccommodationOption",
    "InterestOption",
    "PresentationType",
    "PricingConfig",
    "RegistrationForm",
    "SessionOption",
]
