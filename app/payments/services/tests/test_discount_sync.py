"""
Tests for discount classification and the payment → discount sync.
"""

from decimal import Decimal

import pytest

from payments.models import DiscountRecord
from payments.services import DiscountSyncService, is_discount_payment
from payments.services.discount_sync import metadata_marks_discount
from payments.state_machines import PaymentStatus
from payments.tests.factories import DiscountRecordFactory, PaymentRecordFactory


class TestMetadataMarksDiscount:
    @pytest.mark.parametrize(
        "metadata",
        [
            {"source": "discount-api"},
            {"paymentType": "discount-registration"},
            {"productName": "OPTICS_DISCOUNT_REGISTRATION"},
            {"productName": "Early discount"},
        ],
    )
    def test_discount_markers(self, metadata):
        """Should recognize each discount marker on its own."""
        assert metadata_marks_discount(metadata)

    @pytest.mark.parametrize(
        "metadata",
        [None, {}, {"productName": "NURSING_REGISTRATION"}, {"source": "website"}],
    )
    def test_regular_metadata(self, metadata):
        assert not metadata_marks_discount(metadata)


@pytest.mark.django_db
class TestIsDiscountPayment:
    def test_event_metadata_counts(self):
        """Should classify by event metadata when the record has none."""
        record = PaymentRecordFactory(metadata={})

        assert is_discount_payment(record, event_metadata={"source": "discount-api"})

    def test_existing_discount_record_counts_without_metadata(self):
        """Should fall back to an existing DiscountRecord when no metadata exists."""
        record = PaymentRecordFactory(session_id="cs_shadowed", metadata={})
        DiscountRecordFactory(session_id="cs_shadowed")

        assert is_discount_payment(record)

    def test_metadata_overrides_existing_discount_record(self):
        """Should trust regular metadata over a stray DiscountRecord."""
        record = PaymentRecordFactory(session_id="cs_regular")
        DiscountRecordFactory(session_id="cs_regular")

        assert not is_discount_payment(record)


@pytest.mark.django_db
class TestDiscountSyncService:
    """Tests for DiscountSyncService.sync."""

    def test_creates_discount_record(self):
        """Should upsert a DiscountRecord mirroring the payment."""
        record = PaymentRecordFactory(
            session_id="cs_new_discount",
            amount_total=Decimal("25.00"),
            status=PaymentStatus.COMPLETED,
            payment_status="paid",
            payment_intent_id="pi_disc",
            metadata={"source": "discount-api"},
        )

        discount = DiscountSyncService.sync(record)

        assert discount is not None
        stored = DiscountRecord.objects.get(session_id="cs_new_discount")
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.amount_total == Decimal("25.00")
        assert stored.payment_intent_id == "pi_disc"
        assert stored.vertical == record.vertical
        assert stored.metadata == {"source": "discount-api"}

    def test_updates_existing_discount_record(self):
        """Should overwrite mirrored fields but keep applicant details."""
        DiscountRecordFactory(session_id="cs_existing", name="Ada Lovelace")
        record = PaymentRecordFactory(
            session_id="cs_existing",
            status=PaymentStatus.EXPIRED,
            payment_status="expired",
            metadata={"paymentType": "discount-registration"},
        )

        DiscountSyncService.sync(record)

        stored = DiscountRecord.objects.get(session_id="cs_existing")
        assert stored.status == PaymentStatus.EXPIRED
        assert stored.name == "Ada Lovelace"
        assert DiscountRecord.objects.count() == 1

    def test_regular_payment_creates_nothing(self):
        """Should never create a phantom DiscountRecord."""
        record = PaymentRecordFactory(status=PaymentStatus.COMPLETED)

        assert DiscountSyncService.sync(record) is None
        assert not DiscountRecord.objects.exists()

    def test_errors_are_swallowed(self, mocker):
        """Should log and return None when the upsert fails."""
        mocker.patch.object(
            DiscountRecord.objects, "select_for_update", side_effect=RuntimeError("locked")
        )
        record = PaymentRecordFactory(metadata={"source": "discount-api"})

        assert DiscountSyncService.sync(record) is None
