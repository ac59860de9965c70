"""
Protocol definitions for shared capabilities.

Catalogue options differ per conference: presentation types carry a
``type`` label, accommodation options are described by nights and
guests, session and interest options carry a plain name. Code that only
needs a human label (admin listings, checkout line-item names, form
imports) depends on the Named protocol instead of inspecting which
field each option happens to use.

Usage:
    from core.protocols import Named

    def line_item_name(option: Named) -> str:
        return option.display_name

    option.set_display_name("Oral presentation")
    option.save()
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Named(Protocol):
    """
    Capability of objects that expose an editable display name.

    Implementations map the display name onto their own storage field.
    """

    @property
    def display_name(self) -> str:
        """Human-readable label for this option."""
        ...

    def set_display_name(self, value: str) -> None:
        """Store ``value`` as this option's label (does not save)."""
        ...
