"""
DRF serializers for payments app.

This module provides serializers for:
- Checkout, discount checkout and PayPal order requests
- Registration linking
- Payment and discount record display

Request serializers use the field names of the matching service request
dataclasses, so views build them with ``Request(**validated_data)``.

Usage:
    serializer = CheckoutRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    checkout_request = CheckoutRequest(**serializer.validated_data)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import DiscountRecord, PaymentRecord


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Registration checkout request.

    Fields:
        unit_amount: Price per unit in cents
        quantity: Number of units
        success_url / cancel_url: Redirect targets after checkout
        pricing_config_id: Pricing option the amount is validated against
        (remaining fields are copied into the checkout metadata)
    """

    unit_amount = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)
    success_url = serializers.URLField()
    cancel_url = serializers.URLField()
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True, default=None)
    product_name = serializers.CharField(max_length=255, required=False, default=None)
    customer_email = serializers.EmailField(required=False, allow_null=True, default=None)
    pricing_config_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    order_reference = serializers.CharField(max_length=255, required=False, default=None)
    customer_name = serializers.CharField(max_length=255, required=False, default=None)
    customer_phone = serializers.CharField(max_length=50, required=False, default=None)
    customer_institute = serializers.CharField(max_length=255, required=False, default=None)
    customer_country = serializers.CharField(max_length=100, required=False, default=None)
    registration_type = serializers.CharField(max_length=100, required=False, default=None)
    presentation_type = serializers.CharField(max_length=100, required=False, default=None)
    accompanying_person = serializers.BooleanField(required=False, allow_null=True, default=None)
    extra_nights = serializers.IntegerField(required=False, min_value=0, default=None)
    accommodation_nights = serializers.IntegerField(required=False, min_value=0, default=None)
    accommodation_guests = serializers.IntegerField(required=False, min_value=0, default=None)


class DiscountCheckoutRequestSerializer(serializers.Serializer):
    """Discount checkout request; ``unit_amount`` is in euros."""

    unit_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    success_url = serializers.URLField()
    cancel_url = serializers.URLField()
    currency = serializers.CharField(max_length=3, required=False, default="eur")
    product_name = serializers.CharField(max_length=255, required=False, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default=None)
    customer_email = serializers.EmailField(required=False, allow_null=True, default=None)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    institute_or_university = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    country = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")


class PayPalOrderRequestSerializer(serializers.Serializer):
    """
    PayPal order request.

    Email and amount are checked by the service so the error codes match
    the other PayPal failures.
    """

    customer_email = serializers.EmailField(required=False, allow_blank=True, default=None)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, default=None
    )
    currency = serializers.CharField(max_length=3, required=False, default=None)
    customer_name = serializers.CharField(max_length=255, required=False, default=None)
    phone = serializers.CharField(max_length=50, required=False, default=None)
    country = serializers.CharField(max_length=100, required=False, default=None)
    institute_or_university = serializers.CharField(max_length=255, required=False, default=None)
    pricing_config_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    success_url = serializers.URLField(required=False, default=None)
    cancel_url = serializers.URLField(required=False, default=None)


class PayPalCaptureSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=255, required=False, default=None)


class LinkRegistrationSerializer(serializers.Serializer):
    form_id = serializers.IntegerField(min_value=1)


class PaymentRecordSerializer(serializers.ModelSerializer):
    """
    Payment record for API responses.

    Fields:
        registration_form_id: Linked registration form, null until linked
        amount_display: Formatted amount (e.g., "45.00 EUR")
    """

    registration_form_id = serializers.SerializerMethodField()
    amount_display = serializers.CharField(read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            "id",
            "vertical",
            "provider",
            "session_id",
            "payment_intent_id",
            "customer_email",
            "amount_total",
            "amount_display",
            "currency",
            "status",
            "payment_status",
            "stripe_created_at",
            "stripe_expires_at",
            "completed_at",
            "failed_at",
            "expired_at",
            "registration_form_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_registration_form_id(self, obj: PaymentRecord) -> int | None:
        form = obj.linked_registration
        return form.pk if form else None


class DiscountRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = DiscountRecord
        fields = [
            "id",
            "vertical",
            "session_id",
            "payment_intent_id",
            "customer_email",
            "amount_total",
            "currency",
            "status",
            "payment_status",
            "name",
            "phone",
            "institute_or_university",
            "country",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields


class CheckoutSessionResponseSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    url = serializers.CharField(allow_null=True)


class PayPalOrderResponseSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    order_id = serializers.CharField()
    approval_url = serializers.CharField(allow_null=True)


class SweepResponseSerializer(serializers.Serializer):
    expired_count = serializers.IntegerField()
