"""
Abstract base model shared by every persisted entity.

Usage:
    from core.models import BaseModel

    class PricingConfig(BaseModel):
        total_price = models.DecimalField(max_digits=10, decimal_places=2)

Note:
    Ordering defaults to newest first; models that need a different
    order override Meta.ordering.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model adding creation/modification timestamps.

    Fields:
        created_at: Set once on insert (indexed for "most recent" lookups)
        updated_at: Refreshed on every save
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
