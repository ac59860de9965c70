"""
Tests for RegistrationLinker.

Tests cover:
- Linking after a completed payment (most recent form, case-insensitive email)
- Missing email / missing form handling
- Administrative linking and its conflict rules
"""

import pytest

from conferences.models import RegistrationForm
from conferences.tests.factories import RegistrationFormFactory
from conferences.verticals import Vertical
from payments.services import RegistrationLinker
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentRecordFactory


@pytest.fixture
def completed_record(db):
    return PaymentRecordFactory(
        customer_email="jane@example.com",
        status=PaymentStatus.COMPLETED,
        payment_status="paid",
    )


@pytest.mark.django_db
class TestLinkAfterPayment:
    """Tests for RegistrationLinker.link_after_payment."""

    def test_links_most_recent_form_for_email(self, completed_record):
        """Should link the newest form with a case-insensitively equal email."""
        RegistrationFormFactory(email="jane@example.com")
        newest = RegistrationFormFactory(email="JANE@example.com")

        form = RegistrationLinker.link_after_payment(completed_record)

        assert form.pk == newest.pk
        assert RegistrationForm.objects.get(pk=newest.pk).payment_record_id == completed_record.pk
        assert completed_record.linked_registration.pk == newest.pk

    def test_ignores_forms_of_other_verticals(self, completed_record):
        """Should only consider forms of the payment's conference."""
        RegistrationFormFactory(email="jane@example.com", vertical=Vertical.OPTICS)

        assert RegistrationLinker.link_after_payment(completed_record) is None

    def test_uses_event_email_when_record_has_none(self):
        """Should fall back to the email carried by the event."""
        record = PaymentRecordFactory(customer_email=None, status=PaymentStatus.COMPLETED)
        form = RegistrationFormFactory(email="event@example.com")

        linked = RegistrationLinker.link_after_payment(record, event_email="event@example.com")

        assert linked.pk == form.pk

    def test_no_email_links_nothing(self):
        """Should give up without an email."""
        record = PaymentRecordFactory(customer_email=None, status=PaymentStatus.COMPLETED)
        RegistrationFormFactory()

        assert RegistrationLinker.link_after_payment(record) is None

    def test_already_linked_is_noop(self, completed_record):
        """Should keep an existing link."""
        existing = RegistrationFormFactory(email="other@example.com", payment_record=completed_record)
        RegistrationFormFactory(email="jane@example.com")

        form = RegistrationLinker.link_after_payment(completed_record)

        assert form.pk == existing.pk

    def test_relinks_form_linked_to_another_payment(self, completed_record):
        """Should move the form to the new payment and log a warning."""
        old_record = PaymentRecordFactory(status=PaymentStatus.COMPLETED)
        form = RegistrationFormFactory(email="jane@example.com", payment_record=old_record)

        RegistrationLinker.link_after_payment(completed_record)

        form.refresh_from_db()
        assert form.payment_record_id == completed_record.pk


@pytest.mark.django_db
class TestLinkRegistration:
    """Tests for RegistrationLinker.link_registration."""

    def test_links_given_pair(self, completed_record):
        form = RegistrationFormFactory()

        result = RegistrationLinker.link_registration(form.pk, completed_record.session_id)

        form.refresh_from_db()
        assert result.success
        assert form.payment_record_id == completed_record.pk

    def test_unknown_form(self, completed_record):
        result = RegistrationLinker.link_registration(999999, completed_record.session_id)

        assert result.error_code == "REGISTRATION_NOT_FOUND"

    def test_unknown_payment(self):
        form = RegistrationFormFactory()

        result = RegistrationLinker.link_registration(form.pk, "cs_missing")

        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_payment_linked_to_other_form_conflicts(self, completed_record):
        """Should refuse to steal a payment from another form."""
        RegistrationFormFactory(payment_record=completed_record)
        form = RegistrationFormFactory()

        result = RegistrationLinker.link_registration(form.pk, completed_record.session_id)

        form.refresh_from_db()
        assert result.error_code == "PAYMENT_ALREADY_LINKED"
        assert form.payment_record_id is None

    def test_relinking_same_pair_succeeds(self, completed_record):
        form = RegistrationFormFactory(payment_record=completed_record)

        result = RegistrationLinker.link_registration(form.pk, completed_record.session_id)

        assert result.success

    def test_form_linked_to_other_payment_moves(self, completed_record):
        """A form may move to a new payment; only the payment side is exclusive."""
        previous = PaymentRecordFactory(status=PaymentStatus.COMPLETED)
        form = RegistrationFormFactory(payment_record=previous)

        result = RegistrationLinker.link_registration(form.pk, completed_record.session_id)

        form.refresh_from_db()
        assert result.success
        assert form.payment_record_id == completed_record.pk
