"""
Shared shape of the payment and discount ledgers.

CheckoutRecord is the abstract base of PaymentRecord and DiscountRecord:
one row per provider checkout session, keyed by ``session_id``, with a
django-fsm ``status`` and an optimistic-locking ``version``.

State Flow:
    PENDING → COMPLETED   complete()
    PENDING → FAILED      fail()
    PENDING → EXPIRED     expire()

Each transition also accepts its own target as a source, so replaying
a provider event against a record already in that state re-applies the
field updates without raising. Moving between two different terminal
states raises TransitionNotAllowed; callers check can_proceed() first
and log the conflict instead.

Usage:
    from django_fsm import can_proceed

    if can_proceed(record.complete):
        record.complete(payment_status="paid")
        record.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel

from conferences.verticals import Vertical
from payments.state_machines import PaymentStatus


class CheckoutRecord(BaseModel):
    """
    Abstract base for ledgers keyed by a provider checkout session.

    Fields:
        vertical: Conference the checkout belongs to
        session_id: Provider session id (unique, primary correlation key)
        payment_intent_id: Provider charge id, known once capture starts
        customer_email: Payer email, back-filled from provider events
        amount_total: Amount in euros (never cents)
        currency: ISO 4217 code (lowercase)
        status: Lifecycle status (managed by FSM)
        payment_status: Provider's own status string
        stripe_created_at / stripe_expires_at: Provider timestamps
        version: Optimistic locking version
        completed_at / failed_at / expired_at: Transition timestamps
    """

    # ==========================================================================
    # Correlation Keys
    # ==========================================================================

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this checkout belongs to",
    )

    session_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Provider checkout session id (cs_xxx or PAYPAL_xxx)",
    )

    payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider payment intent id (pi_xxx)",
    )

    customer_email = models.EmailField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Payer email, back-filled from provider events",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount in euros (provider cents divided by 100)",
    )

    currency = models.CharField(
        max_length=3,
        null=True,
        blank=True,
        default="eur",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Lifecycle status (managed by FSM)",
    )

    payment_status = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Provider's own status string (paid, unpaid, failed, expired)",
    )

    # ==========================================================================
    # Provider Timestamps
    # ==========================================================================

    stripe_created_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Provider session creation time",
    )

    stripe_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider session expiry time (used by the stale sweep)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = self.pk and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentStatus.terminal()

    @property
    def amount_display(self) -> str:
        if self.amount_total is None:
            return "-"
        return f"{self.amount_total:.2f} {(self.currency or '').upper()}"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field="status",
        source=[PaymentStatus.PENDING, PaymentStatus.COMPLETED],
        target=PaymentStatus.COMPLETED,
    )
    def complete(self, payment_status: str | None = "paid"):
        """
        Mark the checkout as paid.

        Transition: PENDING -> COMPLETED (or COMPLETED replay)
        """
        self.payment_status = payment_status or "paid"
        if self.completed_at is None:
            self.completed_at = timezone.now()

    @transition(
        field="status",
        source=[PaymentStatus.PENDING, PaymentStatus.FAILED],
        target=PaymentStatus.FAILED,
    )
    def fail(self):
        """
        Mark the charge as failed.

        Transition: PENDING -> FAILED (or FAILED replay)
        """
        self.payment_status = "failed"
        if self.failed_at is None:
            self.failed_at = timezone.now()

    @transition(
        field="status",
        source=[PaymentStatus.PENDING, PaymentStatus.EXPIRED],
        target=PaymentStatus.EXPIRED,
    )
    def expire(self):
        """
        Mark the checkout session as expired.

        Transition: PENDING -> EXPIRED (or EXPIRED replay)
        """
        self.payment_status = "expired"
        if self.expired_at is None:
            self.expired_at = timezone.now()
