"""
Money and time conversions at the provider boundary.

Providers report amounts in cents and timestamps as Unix seconds.
Records store euros (Decimal, two places) and aware datetimes in the
reference zone configured by PAYMENT_REFERENCE_TIMEZONE.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from django.conf import settings

CENT = Decimal("0.01")


def cents_to_euros(cents) -> Decimal | None:
    """
    Convert a provider cent amount to euros.

    Accepts ints and numeric strings (as pulled from raw JSON); returns
    None for missing or non-numeric input.

        >>> cents_to_euros(4500)
        Decimal('45.00')
    """
    if cents is None or isinstance(cents, bool):
        return None
    try:
        value = Decimal(str(cents))
    except InvalidOperation:
        return None
    return (value / 100).quantize(CENT)


def euros_to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


def reference_timezone() -> ZoneInfo:
    return ZoneInfo(settings.PAYMENT_REFERENCE_TIMEZONE)


def from_unix_timestamp(value) -> datetime | None:
    """Provider epoch seconds as an aware datetime in the reference zone."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(seconds, tz=reference_timezone())
