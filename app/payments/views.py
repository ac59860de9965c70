"""
DRF views for payments app.

This module provides API views for:
- Stripe checkout session creation
- Discount checkout creation and manual settlement
- PayPal order creation and capture
- Status refresh, session expiry, registration linking and the stale sweep
- Payment and discount record listing

Related files:
    - services/: CheckoutService, DiscountService, PayPalService, PaymentStatusService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoints
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/{vertical}/checkout/ - Create checkout session
    POST /api/v1/payments/discounts/checkout/ - Create discount checkout
    GET  /api/v1/payments/discounts/ - List discount records (staff)
    POST /api/v1/payments/discounts/{session_id}/paid/ - Mark discount paid (staff)
    POST /api/v1/payments/paypal/orders/ - Create PayPal order
    POST /api/v1/payments/paypal/orders/{order_id}/capture/ - Capture PayPal order
    POST /api/v1/payments/{session_id}/refresh/ - Refresh status from provider
    POST /api/v1/payments/{session_id}/expire/ - Expire session (staff)
    POST /api/v1/payments/{session_id}/link/ - Link registration (staff)
    POST /api/v1/payments/sweep/ - Expire stale records (staff)
    GET  /api/v1/payments/records/ - List records (staff)
    GET  /api/v1/payments/records/{session_id}/ - Record detail (staff)

Security:
    - Checkout, PayPal and refresh endpoints are public; the conference
      sites call them from the browser
    - Everything that changes a record without a provider round trip
      requires staff
"""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from conferences.verticals import resolve_vertical_from_request
from payments.filters import DiscountRecordFilter, PaymentRecordFilter
from payments.models import DiscountRecord, PaymentRecord
from payments.serializers import (
    CheckoutRequestSerializer,
    CheckoutSessionResponseSerializer,
    DiscountCheckoutRequestSerializer,
    DiscountRecordSerializer,
    LinkRegistrationSerializer,
    PaymentRecordSerializer,
    PayPalCaptureSerializer,
    PayPalOrderRequestSerializer,
    PayPalOrderResponseSerializer,
    SweepResponseSerializer,
)
from payments.services import (
    CheckoutRequest,
    CheckoutService,
    DiscountCheckoutRequest,
    DiscountService,
    PaymentStatusService,
    PayPalOrderRequest,
    PayPalService,
    RegistrationLinker,
)

logger = logging.getLogger(__name__)

CONFLICT_CODES = frozenset(
    {
        "PAYMENT_ALREADY_LINKED",
        "ORDER_SESSION_MISMATCH",
        "INVALID_TRANSITION",
        "LOCK_ACQUISITION_FAILED",
    }
)


def failure_status(result: ServiceResult) -> int:
    """HTTP status for a failed service result."""
    code = result.error_code or ""
    if code.endswith("NOT_FOUND"):
        return status.HTTP_404_NOT_FOUND
    if code in CONFLICT_CODES:
        return status.HTTP_409_CONFLICT
    if code.startswith(("STRIPE_", "PAYPAL_")) or code == "INVALID_STRIPE_REQUEST":
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


def failure_response(result: ServiceResult) -> Response:
    return Response(result.to_response(), status=failure_status(result))


# =============================================================================
# Checkout
# =============================================================================


class CreateCheckoutSessionView(APIView):
    """
    Create a Stripe checkout session for a registration.

    POST /api/v1/payments/{vertical}/checkout/

    Request body:
        {
            "unit_amount": 4500,
            "quantity": 1,
            "pricing_config_id": 7,
            "success_url": "https://nursing.example.com/success",
            "cancel_url": "https://nursing.example.com/register"
        }

    Returns:
        {"session_id": "cs_xxx", "url": "https://checkout.stripe.com/..."}
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="create_checkout_session",
        summary="Create checkout session",
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutSessionResponseSerializer,
            400: OpenApiResponse(description="Invalid amount, currency or pricing mismatch"),
            502: OpenApiResponse(description="Stripe unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request, vertical):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CheckoutService.create_checkout_session(
            vertical, CheckoutRequest(**serializer.validated_data)
        )
        if not result.success:
            return failure_response(result)

        session = result.data
        return Response(
            {"session_id": session.session_id, "url": session.url},
            status=status.HTTP_201_CREATED,
        )


class CreateDiscountCheckoutView(APIView):
    """
    Create a discount checkout session.

    The conference is taken from the Origin/Referer of the calling site.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="create_discount_checkout",
        summary="Create discount checkout session",
        request=DiscountCheckoutRequestSerializer,
        responses={201: DiscountRecordSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = DiscountCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        vertical = resolve_vertical_from_request(request)
        result = DiscountService.create_discount_session(
            vertical, DiscountCheckoutRequest(**serializer.validated_data)
        )
        if not result.success:
            return failure_response(result)

        return Response(DiscountRecordSerializer(result.data).data, status=status.HTTP_201_CREATED)


class MarkDiscountPaidView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="mark_discount_paid",
        summary="Mark discount checkout paid",
        request=None,
        responses={200: DiscountRecordSerializer},
        tags=["Payments Admin"],
    )
    def post(self, request, session_id):
        result = DiscountService.mark_paid(session_id)
        if not result.success:
            return failure_response(result)
        return Response(DiscountRecordSerializer(result.data).data)


# =============================================================================
# PayPal
# =============================================================================


class CreatePayPalOrderView(APIView):
    """
    Create a PayPal order.

    Returns the approval URL the payer is redirected to.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="create_paypal_order",
        summary="Create PayPal order",
        request=PayPalOrderRequestSerializer,
        responses={
            201: PayPalOrderResponseSerializer,
            400: OpenApiResponse(description="Missing email or invalid amount"),
            502: OpenApiResponse(description="PayPal unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = PayPalOrderRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        vertical = resolve_vertical_from_request(request)
        result = PayPalService.create_order(
            vertical, PayPalOrderRequest(**serializer.validated_data)
        )
        if not result.success:
            return failure_response(result)

        order = result.data
        return Response(
            {
                "session_id": order.session_id,
                "order_id": order.order_id,
                "approval_url": order.approval_url,
            },
            status=status.HTTP_201_CREATED,
        )


class CapturePayPalOrderView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="capture_paypal_order",
        summary="Capture approved PayPal order",
        request=PayPalCaptureSerializer,
        responses={200: PaymentRecordSerializer},
        tags=["Payments"],
    )
    def post(self, request, order_id):
        serializer = PayPalCaptureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayPalService.capture_order(
            order_id, session_id=serializer.validated_data["session_id"]
        )
        if not result.success:
            return failure_response(result)
        return Response(PaymentRecordSerializer(result.data).data)


# =============================================================================
# Status
# =============================================================================


class RefreshPaymentStatusView(APIView):
    """
    Re-read a checkout session from Stripe and reconcile it.

    Called by the success page when the webhook has not arrived yet.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="refresh_payment_status",
        summary="Refresh payment status",
        request=None,
        responses={
            200: PaymentRecordSerializer,
            404: OpenApiResponse(description="Unknown session id"),
        },
        tags=["Payments"],
    )
    def post(self, request, session_id):
        result = PaymentStatusService.refresh_payment_status(session_id)
        if not result.success:
            return failure_response(result)
        return Response(PaymentRecordSerializer(result.data).data)


class ExpireSessionView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="expire_checkout_session",
        summary="Expire checkout session",
        request=None,
        responses={
            200: PaymentRecordSerializer,
            409: OpenApiResponse(description="Record already in another terminal state"),
        },
        tags=["Payments Admin"],
    )
    def post(self, request, session_id):
        result = PaymentStatusService.expire_session(session_id)
        if not result.success:
            return failure_response(result)

        logger.info(
            "Session expired by staff",
            extra={"session_id": session_id, "user_id": request.user.pk},
        )
        return Response(PaymentRecordSerializer(result.data).data)


class LinkRegistrationView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="link_registration",
        summary="Link registration form to payment",
        request=LinkRegistrationSerializer,
        responses={
            200: OpenApiResponse(description="Linked"),
            409: OpenApiResponse(description="Payment linked to another form"),
        },
        tags=["Payments Admin"],
    )
    def post(self, request, session_id):
        serializer = LinkRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RegistrationLinker.link_registration(
            serializer.validated_data["form_id"], session_id
        )
        if not result.success:
            return failure_response(result)

        form = result.data
        return Response({"form_id": form.pk, "session_id": session_id})


class ExpireStalePaymentsView(APIView):
    """Run the stale sweep now instead of waiting for celery-beat."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="expire_stale_payments",
        summary="Expire stale pending payments",
        request=None,
        responses={200: SweepResponseSerializer},
        tags=["Payments Admin"],
    )
    def post(self, request):
        expired_count = PaymentStatusService.expire_stale_payments()
        return Response({"expired_count": expired_count})


# =============================================================================
# Records
# =============================================================================


@extend_schema(
    operation_id="list_payment_records",
    summary="List payment records",
    tags=["Payments Admin"],
)
class PaymentRecordListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = PaymentRecordSerializer
    queryset = PaymentRecord.objects.select_related("registration_form")
    filter_backends = [DjangoFilterBackend]
    filterset_class = PaymentRecordFilter


@extend_schema(
    operation_id="get_payment_record",
    summary="Get payment record by session id",
    tags=["Payments Admin"],
)
class PaymentRecordDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = PaymentRecordSerializer
    queryset = PaymentRecord.objects.select_related("registration_form")
    lookup_field = "session_id"


@extend_schema(
    operation_id="list_discount_records",
    summary="List discount records",
    tags=["Payments Admin"],
)
class DiscountRecordListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = DiscountRecordSerializer
    queryset = DiscountRecord.objects.all()
    filter_backends = [DjangoFilterBackend]
    filterset_class = DiscountRecordFilter
