"""
Views for the conference API.

Endpoints:
    GET  /api/v1/conferences/{vertical}/pricing/ - List pricing options
    POST /api/v1/conferences/{vertical}/pricing/resolve/ - Pricing for a selection
    POST /api/v1/conferences/{vertical}/pricing/recalculate/ - Recompute totals (staff)
    POST /api/v1/conferences/{vertical}/registrations/ - Submit a registration
    GET  /api/v1/conferences/{vertical}/{kind}/ - List catalogue options
    POST /api/v1/conferences/{vertical}/{kind}/{id}/rename/ - Relabel option (staff)

``kind`` is one of presentation-types, accommodation-options,
session-options, interest-options. Listing, resolving and registration
are public; the conference sites call them before redirecting the
applicant to checkout.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from conferences.serializers import (
    AccommodationOptionSerializer,
    InterestOptionSerializer,
    OptionRenameSerializer,
    PresentationTypeSerializer,
    PricingConfigSerializer,
    PricingResolveSerializer,
    RegistrationFormCreateSerializer,
    RegistrationFormSerializer,
    SessionOptionSerializer,
)
from conferences.services import CatalogueService, PricingService, RegistrationService

logger = logging.getLogger(__name__)


@extend_schema(
    operation_id="list_pricing_configs",
    summary="List pricing options",
    tags=["Conferences"],
)
class PricingConfigListView(generics.ListAPIView):
    """Pricing options for one conference."""

    permission_classes = [AllowAny]
    serializer_class = PricingConfigSerializer
    pagination_class = None

    def get_queryset(self):
        return PricingService.list_for_vertical(self.kwargs["vertical"])


class RegistrationFormCreateView(APIView):
    """Store a registration form ahead of checkout."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="submit_registration",
        summary="Submit registration form",
        request=RegistrationFormCreateSerializer,
        responses={
            201: RegistrationFormSerializer,
            400: OpenApiResponse(description="Invalid form or unknown pricing config"),
        },
        tags=["Conferences"],
    )
    def post(self, request, vertical):
        serializer = RegistrationFormCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RegistrationService.submit(vertical, serializer.validated_data)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        return Response(
            RegistrationFormSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Catalogue
# =============================================================================

OPTION_SERIALIZERS = {
    "presentation-types": PresentationTypeSerializer,
    "accommodation-options": AccommodationOptionSerializer,
    "session-options": SessionOptionSerializer,
    "interest-options": InterestOptionSerializer,
}


def result_status(result) -> int:
    if (result.error_code or "").endswith("NOT_FOUND"):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


@extend_schema(
    operation_id="list_catalogue_options",
    summary="List catalogue options",
    tags=["Conferences"],
)
class CatalogueOptionListView(generics.ListAPIView):
    """
    One kind of catalogue option for one conference.

    The option kind comes from the route (``kind`` kwarg).
    """

    permission_classes = [AllowAny]
    pagination_class = None

    def get_serializer_class(self):
        return OPTION_SERIALIZERS[self.kwargs["kind"]]

    def get_queryset(self):
        return CatalogueService.list_options(self.kwargs["vertical"], self.kwargs["kind"])


class CatalogueOptionRenameView(APIView):
    """Staff relabel of a catalogue option."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="rename_catalogue_option",
        summary="Rename catalogue option",
        request=OptionRenameSerializer,
        responses={
            200: OpenApiResponse(description="Renamed option"),
            404: OpenApiResponse(description="Unknown option"),
        },
        tags=["Conferences Admin"],
    )
    def post(self, request, vertical, kind, option_id):
        serializer = OptionRenameSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CatalogueService.rename_option(
            vertical, kind, option_id, serializer.validated_data["name"]
        )
        if not result.success:
            return Response(result.to_response(), status=result_status(result))
        return Response(OPTION_SERIALIZERS[kind](result.data).data)


# =============================================================================
# Pricing
# =============================================================================


class PricingResolveView(APIView):
    """Pricing configs for a presentation type and accommodation selection."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="resolve_pricing_config",
        summary="Resolve pricing config from selection",
        request=PricingResolveSerializer,
        responses={
            200: PricingConfigSerializer(many=True),
            400: OpenApiResponse(description="Invalid presentation or registration type"),
            404: OpenApiResponse(description="No pricing config for the selection"),
        },
        tags=["Conferences"],
    )
    def post(self, request, vertical):
        serializer = PricingResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PricingService.resolve(
            vertical,
            data["presentation_type"],
            data["registration_type"],
            nights=data.get("number_of_nights"),
            guests=data.get("number_of_guests"),
        )
        if not result.success:
            return Response(result.to_response(), status=result_status(result))
        return Response(PricingConfigSerializer(result.data, many=True).data)


class PricingRecalculateView(APIView):
    """Recompute stored totals after catalogue price changes."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="recalculate_pricing_configs",
        summary="Recalculate all pricing totals",
        request=None,
        responses={200: OpenApiResponse(description="Number of configs updated")},
        tags=["Conferences Admin"],
    )
    def post(self, request, vertical):
        updated_count = PricingService.recalculate_all(vertical)
        return Response({"updated_count": updated_count})
