"""
Conference verticals and their routing descriptors.

The backend serves four conferences that share one implementation.
Every persisted row carries a ``vertical`` column, and everything that
used to differ between the conference sites (the product keyword in
checkout metadata, the public site domains) lives in a
VerticalDescriptor.

Routing order for provider events:
    1. Checkout metadata ``productName`` contains the vertical keyword
    2. The checkout success/cancel URL points at one of the vertical's domains

Usage:
    from conferences.verticals import Vertical, get_descriptor, resolve_vertical

    descriptor = get_descriptor(Vertical.OPTICS)
    descriptor.product_name  # "OPTICS_REGISTRATION"

    vertical = resolve_vertical(product_name="NURSING_REGISTRATION")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from django.conf import settings
from django.db import models

if TYPE_CHECKING:
    from django.http import HttpRequest


class Vertical(models.TextChoices):
    """Conference verticals served by this backend."""

    NURSING = "nursing", "Nursing"
    OPTICS = "optics", "Optics"
    RENEWABLE = "renewable", "Renewable Energy"
    POLYMERS = "polymers", "Polymers"


# Keyword searched (case-insensitively) in checkout metadata productName.
PRODUCT_KEYWORDS = {
    Vertical.OPTICS: "OPTICS",
    Vertical.NURSING: "NURSING",
    Vertical.RENEWABLE: "RENEWABLE",
    Vertical.POLYMERS: "POLYMER",
}

# Checked in this order; the first keyword hit wins.
ROUTING_ORDER = (
    Vertical.OPTICS,
    Vertical.NURSING,
    Vertical.RENEWABLE,
    Vertical.POLYMERS,
)


@dataclass(frozen=True)
class VerticalDescriptor:
    """
    Everything the payment pipeline needs to know about one vertical.

    Attributes:
        vertical: The vertical this descriptor describes
        product_keyword: Upper-case marker expected in productName
        domains: Public site domains (without scheme)
    """

    vertical: Vertical
    product_keyword: str
    domains: tuple[str, ...]

    @property
    def product_name(self) -> str:
        """Default productName sent with registration checkouts."""
        return f"{self.product_keyword}_REGISTRATION"

    @property
    def discount_product_name(self) -> str:
        """Default productName sent with discount checkouts."""
        return f"{self.product_keyword}_DISCOUNT_REGISTRATION"

    def matches_product(self, product_name: str | None) -> bool:
        if not product_name:
            return False
        return self.product_keyword in product_name.upper()

    def matches_url(self, url: str | None) -> bool:
        if not url:
            return False
        host = urlparse(url).netloc or url
        host = host.lower()
        return any(domain in host for domain in self.domains)


def get_descriptor(vertical: Vertical | str) -> VerticalDescriptor:
    """Build the descriptor for ``vertical`` from settings."""
    vertical = Vertical(vertical)
    domains = settings.CONFERENCE_DOMAINS.get(vertical.value, ())
    return VerticalDescriptor(
        vertical=vertical,
        product_keyword=PRODUCT_KEYWORDS[vertical],
        domains=tuple(d.lower() for d in domains),
    )


def all_descriptors() -> list[VerticalDescriptor]:
    """Descriptors in routing order."""
    return [get_descriptor(v) for v in ROUTING_ORDER]


def resolve_vertical(
    product_name: str | None = None,
    urls: tuple[str | None, ...] = (),
) -> Vertical | None:
    """
    Decide which vertical an event or request belongs to.

    Metadata wins over URLs. Returns None when nothing matches; the
    caller decides whether that is an error or a default applies.
    """
    descriptors = all_descriptors()
    for descriptor in descriptors:
        if descriptor.matches_product(product_name):
            return descriptor.vertical
    for url in urls:
        for descriptor in descriptors:
            if descriptor.matches_url(url):
                return descriptor.vertical
    return None


def resolve_vertical_from_request(
    request: HttpRequest,
    default: Vertical = Vertical.NURSING,
) -> Vertical:
    """Pick the vertical from the Origin/Referer headers of a browser call."""
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")
    return resolve_vertical(urls=(origin, referer)) or default
