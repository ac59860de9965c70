"""
Tests for conference services.

Tests cover:
- Pricing config lookup per vertical
- Pricing resolution from a registrant selection and total recalculation
- Catalogue option relabelling
- Registration submission and the amount snapshot
"""

from decimal import Decimal

import pytest

from core.exceptions import NotFoundError

from conferences.models import PresentationType, PricingConfig, RegistrationForm
from conferences.services import (
    REGISTRATION_AND_ACCOMMODATION,
    REGISTRATION_ONLY,
    CatalogueService,
    PricingService,
    RegistrationService,
)
from conferences.tests.factories import (
    AccommodationOptionFactory,
    InterestOptionFactory,
    PresentationTypeFactory,
    PricingConfigFactory,
    SessionOptionFactory,
)
from conferences.verticals import Vertical


def applicant(**overrides):
    values = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+1 555 0100",
        "institute_or_university": "State University",
        "country": "US",
        "pricing_config_id": None,
        "amount_paid": None,
    }
    values.update(overrides)
    return values


@pytest.mark.django_db
class TestPricingService:
    def test_get_pricing_config(self):
        config = PricingConfigFactory(vertical=Vertical.OPTICS)

        assert PricingService.get_pricing_config(config.pk, Vertical.OPTICS) == config
        assert PricingService.get_total_price(config.pk) == Decimal("45.00")

    def test_other_vertical_not_found(self):
        """Should not hand out another conference's pricing."""
        config = PricingConfigFactory(vertical=Vertical.OPTICS)

        with pytest.raises(NotFoundError) as exc_info:
            PricingService.get_pricing_config(config.pk, Vertical.NURSING)

        assert exc_info.value.error_code == "PRICING_CONFIG_NOT_FOUND"

    def test_list_for_vertical(self):
        PricingConfigFactory(vertical=Vertical.OPTICS)
        PricingConfigFactory(vertical=Vertical.NURSING)

        assert PricingService.list_for_vertical(Vertical.OPTICS).count() == 1


@pytest.mark.django_db
class TestPricingResolve:
    @pytest.fixture
    def poster(self):
        return PresentationTypeFactory(vertical=Vertical.OPTICS, type="Poster")

    def test_registration_only(self, poster):
        bare = PricingConfigFactory(vertical=Vertical.OPTICS, presentation_type=poster)
        PricingConfigFactory(
            vertical=Vertical.OPTICS,
            presentation_type=poster,
            accommodation_option=AccommodationOptionFactory(vertical=Vertical.OPTICS),
        )

        result = PricingService.resolve(Vertical.OPTICS, "Poster", REGISTRATION_ONLY)

        assert result.success
        assert result.data == [bare]

    def test_with_accommodation(self, poster):
        PricingConfigFactory(
            vertical=Vertical.OPTICS,
            presentation_type=poster,
            accommodation_option=AccommodationOptionFactory(
                vertical=Vertical.OPTICS, nights=2, guests=1
            ),
        )
        wanted = PricingConfigFactory(
            vertical=Vertical.OPTICS,
            presentation_type=poster,
            accommodation_option=AccommodationOptionFactory(
                vertical=Vertical.OPTICS, nights=3, guests=2
            ),
        )

        result = PricingService.resolve(
            Vertical.OPTICS, "Poster", REGISTRATION_AND_ACCOMMODATION, nights=3, guests=2
        )

        assert result.success
        assert result.data == [wanted]

    def test_accommodation_needs_nights_and_guests(self, poster):
        result = PricingService.resolve(
            Vertical.OPTICS, "Poster", REGISTRATION_AND_ACCOMMODATION, nights=2
        )

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"
        assert "guests" in result.errors

    def test_unknown_presentation_type(self, poster):
        result = PricingService.resolve(Vertical.NURSING, "Poster", REGISTRATION_ONLY)

        assert result.error_code == "INVALID_PRESENTATION_TYPE"

    def test_unknown_registration_type(self, poster):
        result = PricingService.resolve(Vertical.OPTICS, "Poster", "DAY_PASS")

        assert result.error_code == "INVALID_REGISTRATION_TYPE"

    def test_no_matching_config(self, poster):
        PricingConfigFactory(vertical=Vertical.OPTICS, presentation_type=poster)

        result = PricingService.resolve(
            Vertical.OPTICS, "Poster", REGISTRATION_AND_ACCOMMODATION, nights=5, guests=1
        )

        assert result.error_code == "PRICING_CONFIG_NOT_FOUND"


@pytest.mark.django_db
class TestPricingRecalculate:
    def test_refreshes_stale_totals(self):
        config = PricingConfigFactory(vertical=Vertical.OPTICS)
        other = PricingConfigFactory(vertical=Vertical.NURSING)
        # Bulk update skips save(), leaving stored totals stale
        PresentationType.objects.update(price=Decimal("60.00"))

        updated = PricingService.recalculate_all(Vertical.OPTICS)

        assert updated == 1
        assert PricingConfig.objects.get(pk=config.pk).total_price == Decimal("60.00")
        assert PricingConfig.objects.get(pk=other.pk).total_price == Decimal("45.00")


@pytest.mark.django_db
class TestCatalogueService:
    @pytest.mark.parametrize(
        "factory_class,kind,field",
        [
            (PresentationTypeFactory, "presentation-types", "type"),
            (AccommodationOptionFactory, "accommodation-options", "label"),
            (SessionOptionFactory, "session-options", "session_name"),
            (InterestOptionFactory, "interest-options", "option_name"),
        ],
    )
    def test_rename_writes_the_label_field(self, factory_class, kind, field):
        option = factory_class(vertical=Vertical.OPTICS)

        result = CatalogueService.rename_option(Vertical.OPTICS, kind, option.pk, "  Renamed ")

        assert result.success
        option.refresh_from_db()
        assert getattr(option, field) == "Renamed"
        assert option.display_name == "Renamed"

    def test_rename_other_vertical_not_found(self):
        option = SessionOptionFactory(vertical=Vertical.OPTICS)

        result = CatalogueService.rename_option(
            Vertical.NURSING, "session-options", option.pk, "Renamed"
        )

        assert result.error_code == "OPTION_NOT_FOUND"

    def test_rename_unknown_kind(self):
        option = SessionOptionFactory(vertical=Vertical.OPTICS)

        result = CatalogueService.rename_option(Vertical.OPTICS, "rooms", option.pk, "Renamed")

        assert result.error_code == "OPTION_NOT_FOUND"

    def test_rename_blank(self):
        option = SessionOptionFactory(vertical=Vertical.OPTICS)

        result = CatalogueService.rename_option(
            Vertical.OPTICS, "session-options", option.pk, "   "
        )

        assert result.error_code == "VALIDATION_ERROR"

    def test_list_options(self):
        InterestOptionFactory(vertical=Vertical.OPTICS)
        InterestOptionFactory(vertical=Vertical.NURSING)

        assert CatalogueService.list_options(Vertical.OPTICS, "interest-options").count() == 1


@pytest.mark.django_db
class TestRegistrationService:
    """Tests for RegistrationService.submit."""

    def test_snapshots_pricing_total(self):
        """Should store the pricing total, ignoring any submitted amount."""
        config = PricingConfigFactory(
            presentation_type__price=Decimal("45.00"), processing_fee_percent=Decimal("2.5")
        )

        result = RegistrationService.submit(
            Vertical.NURSING,
            applicant(pricing_config_id=config.pk, amount_paid=Decimal("1.00")),
        )

        assert result.success
        form = RegistrationForm.objects.get(pk=result.data.pk)
        assert form.amount_paid == Decimal("46.13")
        assert form.pricing_config == config
        assert form.vertical == Vertical.NURSING
        assert form.payment_record is None

    def test_snapshot_survives_price_change(self):
        config = PricingConfigFactory(presentation_type__price=Decimal("45.00"))
        result = RegistrationService.submit(
            Vertical.NURSING, applicant(pricing_config_id=config.pk)
        )

        config.processing_fee_percent = Decimal("10")
        config.save()

        result.data.refresh_from_db()
        assert result.data.amount_paid == Decimal("45.00")

    def test_submitted_amount_without_config(self):
        result = RegistrationService.submit(
            Vertical.RENEWABLE, applicant(amount_paid=Decimal("120.00"))
        )

        assert result.data.amount_paid == Decimal("120.00")
        assert result.data.pricing_config is None

    def test_amount_required(self):
        result = RegistrationService.submit(Vertical.NURSING, applicant())

        assert not result.success
        assert result.error_code == "AMOUNT_REQUIRED"
        assert not RegistrationForm.objects.exists()

    def test_unknown_pricing_config(self):
        result = RegistrationService.submit(Vertical.NURSING, applicant(pricing_config_id=999999))

        assert result.error_code == "PRICING_CONFIG_NOT_FOUND"
