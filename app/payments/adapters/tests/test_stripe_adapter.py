"""
Tests for Stripe adapter.

Tests cover:
- Checkout Session parameter validation and request shape
- Reading sessions and intents from Stripe objects
- Error translation for each exception type
- Webhook signature verification
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock

import pytest
import stripe

from payments.adapters import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    PaymentIntentData,
    StripeAdapter,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)
from payments.tests.factories import session_payload

WEBHOOK_SECRET = "whsec_test_adapter"


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Stripe-Signature header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_params(**overrides) -> CreateCheckoutSessionParams:
    values = {
        "product_name": "NURSING_REGISTRATION",
        "unit_amount_cents": 4500,
        "quantity": 1,
        "currency": "eur",
        "success_url": "https://nursingmeet2026.com/success?session_id={CHECKOUT_SESSION_ID}",
        "cancel_url": "https://nursingmeet2026.com/register",
    }
    values.update(overrides)
    return CreateCheckoutSessionParams(**values)


@pytest.fixture
def adapter():
    """Adapter with a mocked StripeClient."""
    adapter = StripeAdapter(api_key="sk_test_adapter", timeout=5, max_retries=0)
    adapter._client = MagicMock()
    return adapter


# =============================================================================
# CreateCheckoutSessionParams Tests
# =============================================================================


class TestCreateCheckoutSessionParams:
    """Tests for CreateCheckoutSessionParams dataclass validation."""

    def test_amount_must_be_positive(self):
        """Should raise ValueError for zero or negative amount."""
        with pytest.raises(ValueError, match="unit_amount_cents must be positive"):
            make_params(unit_amount_cents=0)

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValueError, match="quantity must be positive"):
            make_params(quantity=0)

    def test_stripe_params(self):
        """Should build a single card line item in payment mode."""
        params = make_params(
            customer_email="jane@example.com",
            metadata={"productName": "NURSING_REGISTRATION", "orderReference": None},
            expires_at=1700001800,
        ).to_stripe_params()

        assert params["mode"] == "payment"
        assert params["payment_method_types"] == ["card"]
        line_item = params["line_items"][0]
        assert line_item["quantity"] == 1
        assert line_item["price_data"]["unit_amount"] == 4500
        assert line_item["price_data"]["currency"] == "eur"
        assert line_item["price_data"]["product_data"]["name"] == "NURSING_REGISTRATION"
        assert params["customer_email"] == "jane@example.com"
        assert params["expires_at"] == 1700001800
        assert params["metadata"] == {"productName": "NURSING_REGISTRATION"}

    def test_metadata_copied_to_payment_intent(self):
        """Should give payment_intent events the same metadata as the session."""
        params = make_params(metadata={"productName": "OPTICS_REGISTRATION"}).to_stripe_params()

        assert params["payment_intent_data"]["metadata"] == {"productName": "OPTICS_REGISTRATION"}

    def test_optional_fields_omitted(self):
        params = make_params().to_stripe_params()

        assert "customer_email" not in params
        assert "expires_at" not in params


# =============================================================================
# Result Types Tests
# =============================================================================


class TestCheckoutSessionResult:
    """Tests for CheckoutSessionResult.from_stripe."""

    def test_reads_session_object(self):
        obj = session_payload("cs_read", payment_intent="pi_read", customer_email="a@b.com")[
            "data"
        ]["object"]

        result = CheckoutSessionResult.from_stripe(obj)

        assert result.id == "cs_read"
        assert result.status == "complete"
        assert result.payment_status == "paid"
        assert result.payment_intent == "pi_read"
        assert result.customer_email == "a@b.com"
        assert result.amount_total == 3000
        assert result.metadata == {"productName": "NURSING_REGISTRATION"}

    def test_expanded_fields(self):
        """Should read expanded payment_intent and customer_details email."""
        result = CheckoutSessionResult.from_stripe(
            {
                "id": "cs_exp",
                "payment_intent": {"id": "pi_exp"},
                "customer_details": {"email": "details@example.com"},
            }
        )

        assert result.payment_intent == "pi_exp"
        assert result.customer_email == "details@example.com"
        assert result.metadata == {}

    def test_id_required(self):
        with pytest.raises(KeyError):
            CheckoutSessionResult.from_stripe({"status": "open"})


class TestPaymentIntentData:
    def test_reads_intent(self):
        result = PaymentIntentData.from_stripe(
            {"id": "pi_1", "status": "succeeded", "amount": 1000, "receipt_email": "r@x.com"}
        )

        assert result.amount == 1000
        assert result.receipt_email == "r@x.com"


# =============================================================================
# StripeAdapter Operation Tests
# =============================================================================


class TestStripeAdapterOperations:
    """Tests for successful Checkout Session calls."""

    def test_create_checkout_session(self, adapter):
        adapter.client.checkout.sessions.create.return_value = {
            "id": "cs_new",
            "status": "open",
            "url": "https://checkout.stripe.com/c/pay/cs_new",
        }

        result = adapter.create_checkout_session(make_params())

        assert result.id == "cs_new"
        assert result.url.endswith("cs_new")
        sent = adapter.client.checkout.sessions.create.call_args.kwargs["params"]
        assert sent["line_items"][0]["price_data"]["unit_amount"] == 4500

    def test_retrieve_session(self, adapter):
        adapter.client.checkout.sessions.retrieve.return_value = {"id": "cs_1", "status": "complete"}

        result = adapter.retrieve_session("cs_1")

        adapter.client.checkout.sessions.retrieve.assert_called_once_with("cs_1")
        assert result.status == "complete"

    def test_expire_session(self, adapter):
        adapter.client.checkout.sessions.expire.return_value = {"id": "cs_1", "status": "expired"}

        assert adapter.expire_session("cs_1").status == "expired"

    def test_client_uses_instance_key(self):
        """Should build a per-instance client instead of setting stripe.api_key."""
        previous = stripe.api_key
        adapter = StripeAdapter(api_key="sk_test_instance", timeout=5, max_retries=0)

        assert isinstance(adapter.client, stripe.StripeClient)
        assert adapter.client is adapter.client
        assert stripe.api_key == previous


# =============================================================================
# StripeAdapter Error Translation Tests
# =============================================================================


class TestStripeAdapterErrorTranslation:
    """Tests for Stripe error translation to domain exceptions."""

    def test_invalid_request_error(self, adapter):
        """Should translate InvalidRequestError to StripeInvalidRequestError."""
        adapter.client.checkout.sessions.retrieve.side_effect = stripe.InvalidRequestError(
            "No such checkout.session: cs_missing", "id", code="resource_missing"
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            adapter.retrieve_session("cs_missing")

        assert exc_info.value.stripe_code == "resource_missing"
        assert exc_info.value.is_retryable is False

    def test_authentication_error(self, adapter):
        adapter.client.checkout.sessions.retrieve.side_effect = stripe.AuthenticationError(
            "Invalid API Key"
        )

        with pytest.raises(StripeAuthenticationError):
            adapter.retrieve_session("cs_1")

    def test_rate_limit_error(self, adapter):
        adapter.client.checkout.sessions.retrieve.side_effect = stripe.RateLimitError("Too many")

        with pytest.raises(StripeRateLimitError) as exc_info:
            adapter.retrieve_session("cs_1")

        assert exc_info.value.is_retryable is True

    def test_timeout(self, adapter):
        """Should translate a timed out connection to StripeTimeoutError."""
        adapter.client.checkout.sessions.retrieve.side_effect = stripe.APIConnectionError(
            "Request timed out"
        )

        with pytest.raises(StripeTimeoutError) as exc_info:
            adapter.retrieve_session("cs_1")

        assert exc_info.value.error_code == "STRIPE_TIMEOUT"

    def test_connection_error(self, adapter):
        adapter.client.checkout.sessions.retrieve.side_effect = stripe.APIConnectionError(
            "Connection refused"
        )

        with pytest.raises(StripeAPIUnavailableError):
            adapter.retrieve_session("cs_1")

    def test_generic_stripe_error(self, adapter):
        adapter.client.checkout.sessions.create.side_effect = stripe.APIError("Server error")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            adapter.create_checkout_session(make_params())

        assert exc_info.value.error_code == "STRIPE_UNAVAILABLE"

    def test_unexpected_error(self, adapter):
        adapter.client.checkout.sessions.expire.side_effect = RuntimeError("boom")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            adapter.expire_session("cs_1")

        assert exc_info.value.stripe_code == "unknown_error"


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestVerifyWebhookSignature:
    """Tests for StripeAdapter.verify_webhook_signature."""

    def test_valid_signature(self):
        """Should return the structured event, raw text and plain dict."""
        payload = json.dumps(session_payload("cs_signed", event_id="evt_signed"))

        verified = StripeAdapter.verify_webhook_signature(
            payload.encode(), sign(payload), WEBHOOK_SECRET
        )

        assert verified.id == "evt_signed"
        assert verified.type == "checkout.session.completed"
        assert verified.payload == payload
        assert verified.event["data"]["object"]["id"] == "cs_signed"
        assert verified.data["data"]["object"]["amount_total"] == 3000

    @pytest.mark.parametrize("secret", [None, "", "sk_test_not_a_webhook_secret"])
    def test_secret_must_be_whsec(self, secret):
        payload = json.dumps(session_payload("cs_1"))

        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature(payload, sign(payload), secret)

        assert exc_info.value.error_code == "WEBHOOK_SECRET_INVALID"

    def test_missing_signature(self):
        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature("{}", "", WEBHOOK_SECRET)

        assert exc_info.value.error_code == "MISSING_SIGNATURE"

    def test_signature_mismatch(self):
        """Should reject a body signed with another secret."""
        payload = json.dumps(session_payload("cs_forged"))

        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature(
                payload, sign(payload, secret="whsec_other"), WEBHOOK_SECRET
            )

        assert exc_info.value.error_code == "INVALID_WEBHOOK_SIGNATURE"
        assert exc_info.value.message == "Invalid signature"

    def test_tampered_body(self):
        payload = json.dumps(session_payload("cs_1", amount_total=3000))
        tampered = payload.replace("3000", "1")

        with pytest.raises(WebhookSignatureError):
            StripeAdapter.verify_webhook_signature(tampered, sign(payload), WEBHOOK_SECRET)

    def test_unparseable_payload(self):
        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature("not json", sign("not json"), WEBHOOK_SECRET)

        assert exc_info.value.error_code == "INVALID_WEBHOOK_PAYLOAD"
