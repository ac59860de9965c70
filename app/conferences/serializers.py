"""
Serializers for the conference API.

Serializers:
    PricingConfigSerializer: Read-only pricing option with option labels
    RegistrationFormCreateSerializer: Input for form submission
    RegistrationFormSerializer: Stored registration response
    PresentationTypeSerializer, AccommodationOptionSerializer,
    SessionOptionSerializer, InterestOptionSerializer: Catalogue listings
    OptionRenameSerializer: Staff relabel input
    PricingResolveSerializer: Selection resolved to pricing configs
"""

from __future__ import annotations

from rest_framework import serializers

from conferences.models import (
    AccommodationOption,
    InterestOption,
    PresentationType,
    PricingConfig,
    RegistrationForm,
    SessionOption,
)
from conferences.services import REGISTRATION_TYPES


class PricingConfigSerializer(serializers.ModelSerializer):
    """Pricing option as shown on the registration page."""

    presentation_type = serializers.CharField(
        source="presentation_type.display_name", read_only=True
    )
    accommodation = serializers.SerializerMethodField()

    class Meta:
        model = PricingConfig
        fields = [
            "id",
            "vertical",
            "presentation_type",
            "accommodation",
            "processing_fee_percent",
            "total_price",
        ]
        read_only_fields = fields

    def get_accommodation(self, obj: PricingConfig) -> str | None:
        if obj.accommodation_option is None:
            return None
        return obj.accommodation_option.display_name


class RegistrationFormCreateSerializer(serializers.Serializer):
    """Registration submitted from a conference site."""

    name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    email = serializers.EmailField()
    institute_or_university = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    country = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    pricing_config_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    amount_paid = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, default=None
    )


class RegistrationFormSerializer(serializers.ModelSerializer):
    payment_session_id = serializers.CharField(
        source="payment_record.session_id", read_only=True, default=None
    )

    class Meta:
        model = RegistrationForm
        fields = [
            "id",
            "vertical",
            "name",
            "phone",
            "email",
            "institute_or_university",
            "country",
            "pricing_config",
            "amount_paid",
            "payment_session_id",
            "created_at",
        ]
        read_only_fields = fields


class PresentationTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PresentationType
        fields = ["id", "vertical", "type", "price"]
        read_only_fields = fields


class AccommodationOptionSerializer(serializers.ModelSerializer):
    label = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = AccommodationOption
        fields = ["id", "vertical", "nights", "guests", "price", "label"]
        read_only_fields = fields


class SessionOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionOption
        fields = ["id", "vertical", "session_name"]
        read_only_fields = fields


class InterestOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = InterestOption
        fields = ["id", "vertical", "option_name"]
        read_only_fields = fields


class OptionRenameSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)


class PricingResolveSerializer(serializers.Serializer):
    """Registrant's selection on the registration page."""

    presentation_type = serializers.CharField(max_length=100)
    registration_type = serializers.ChoiceField(choices=REGISTRATION_TYPES)
    number_of_nights = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    number_of_guests = serializers.IntegerField(min_value=0, required=False, allow_null=True)
