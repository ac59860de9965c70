"""
Pytest fixtures shared by the payments test packages.

Provider adapters are replaced by mocks built with ``spec`` so tests
fail loudly when they call something the real adapter does not offer.

Usage:
    def test_refresh(pending_record, mock_stripe_adapter):
        mock_stripe_adapter.retrieve_session.return_value = CheckoutSessionResult(
            id=pending_record.session_id, status="complete", payment_status="paid"
        )
"""

import pytest
from rest_framework.test import APIClient

from payments.adapters import PayPalAdapter, StripeAdapter
from payments.tests.factories import PaymentRecordFactory, StaffUserFactory


@pytest.fixture
def pending_record(db):
    """PENDING 30.00 EUR nursing checkout."""
    return PaymentRecordFactory()


@pytest.fixture
def mock_stripe_adapter(mocker):
    """StripeAdapter returned by StripeAdapter.from_settings()."""
    adapter = mocker.MagicMock(spec=StripeAdapter)
    mocker.patch.object(StripeAdapter, "from_settings", return_value=adapter)
    return adapter


@pytest.fixture
def mock_paypal_adapter(mocker):
    """PayPalAdapter returned by PayPalAdapter.from_settings()."""
    adapter = mocker.MagicMock(spec=PayPalAdapter)
    mocker.patch.object(PayPalAdapter, "from_settings", return_value=adapter)
    return adapter


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def staff_user(db):
    return StaffUserFactory()


@pytest.fixture
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client
