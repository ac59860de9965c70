"""
Services for the conference catalogue and registration forms.

PricingService:
    Lookup of pricing configs; the payments app uses it to validate
    checkout amounts against the configured total. Also resolves the
    config matching a registrant's selection and recomputes totals.

CatalogueService:
    Option listings and staff renames through the Named capability.

RegistrationService:
    Stores registration forms submitted before checkout.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService, ServiceResult

from conferences.models import (
    AccommodationOption,
    InterestOption,
    PresentationType,
    PricingConfig,
    RegistrationForm,
    SessionOption,
)

if TYPE_CHECKING:
    from typing import Any

    from core.protocols import Named

    from conferences.verticals import Vertical

REGISTRATION_ONLY = "REGISTRATION_ONLY"
REGISTRATION_AND_ACCOMMODATION = "REGISTRATION_AND_ACCOMMODATION"
REGISTRATION_TYPES = (REGISTRATION_ONLY, REGISTRATION_AND_ACCOMMODATION)

# URL segment -> option model
CATALOGUE_OPTIONS = {
    "presentation-types": PresentationType,
    "accommodation-options": AccommodationOption,
    "session-options": SessionOption,
    "interest-options": InterestOption,
}


class PricingService(BaseService):
    """Read access to pricing configs."""

    @classmethod
    def get_pricing_config(
        cls,
        pricing_config_id: int,
        vertical: Vertical | str | None = None,
    ) -> PricingConfig:
        """
        Fetch a pricing config by id.

        Raises:
            NotFoundError: If no config exists (for the given vertical)
        """
        queryset = PricingConfig.objects.select_related(
            "presentation_type", "accommodation_option"
        )
        if vertical:
            queryset = queryset.filter(vertical=vertical)
        config = queryset.filter(pk=pricing_config_id).first()
        if config is None:
            raise NotFoundError(
                f"Pricing config {pricing_config_id} not found",
                error_code="PRICING_CONFIG_NOT_FOUND",
                details={"pricing_config_id": pricing_config_id},
            )
        return config

    @classmethod
    def get_total_price(cls, pricing_config_id: int) -> Decimal:
        """Total price in euros for ``pricing_config_id``."""
        return cls.get_pricing_config(pricing_config_id).total_price

    @classmethod
    def list_for_vertical(cls, vertical: Vertical | str):
        return PricingConfig.objects.filter(vertical=vertical).select_related(
            "presentation_type", "accommodation_option"
        )

    @classmethod
    def resolve(
        cls,
        vertical: Vertical | str,
        presentation_type: str,
        registration_type: str,
        nights: int | None = None,
        guests: int | None = None,
    ) -> ServiceResult[list[PricingConfig]]:
        """
        Pricing configs matching a registrant's selection.

        REGISTRATION_ONLY matches configs without accommodation;
        REGISTRATION_AND_ACCOMMODATION matches the accommodation with
        exactly ``nights`` and ``guests``.
        """
        logger = cls.get_logger()
        presentation = PresentationType.objects.filter(
            vertical=vertical, type=presentation_type
        ).first()
        if presentation is None:
            return ServiceResult.failure(
                f"Invalid presentation type: {presentation_type}",
                error_code="INVALID_PRESENTATION_TYPE",
            )

        configs = cls.list_for_vertical(vertical).filter(presentation_type=presentation)
        if registration_type == REGISTRATION_ONLY:
            configs = configs.filter(accommodation_option__isnull=True)
        elif registration_type == REGISTRATION_AND_ACCOMMODATION:
            validation = cls.validate_required(nights=nights, guests=guests)
            if validation:
                return validation
            configs = configs.filter(
                accommodation_option__nights=nights,
                accommodation_option__guests=guests,
            )
        else:
            return ServiceResult.failure(
                f"Invalid registration type: {registration_type}",
                error_code="INVALID_REGISTRATION_TYPE",
            )

        configs = list(configs)
        if not configs:
            logger.warning(
                "No pricing config for selection",
                extra={
                    "vertical": str(vertical),
                    "presentation_type": presentation_type,
                    "registration_type": registration_type,
                    "nights": nights,
                    "guests": guests,
                },
            )
            return ServiceResult.failure(
                "No pricing configurations found for the provided criteria",
                error_code="PRICING_CONFIG_NOT_FOUND",
            )
        return ServiceResult.success(configs)

    @classmethod
    def recalculate_all(cls, vertical: Vertical | str) -> int:
        """Recompute and store ``total_price`` of every config of ``vertical``."""
        updated = 0
        with cls.atomic():
            for config in cls.list_for_vertical(vertical).select_for_update(of=("self",)):
                config.save()
                updated += 1

        cls.get_logger().info(
            "Pricing totals recalculated",
            extra={"vertical": str(vertical), "updated_count": updated},
        )
        return updated


class CatalogueService(BaseService):
    """Catalogue option listing and labelling."""

    @classmethod
    def list_options(cls, vertical: Vertical | str, kind: str):
        return CATALOGUE_OPTIONS[kind].objects.filter(vertical=vertical)

    @classmethod
    def rename_option(
        cls,
        vertical: Vertical | str,
        kind: str,
        option_id: int,
        name: str,
    ) -> ServiceResult[Named]:
        """
        Relabel a catalogue option of ``vertical``.

        Each option type stores its label in its own field; the rename
        goes through ``set_display_name`` so callers never need to know
        which one.
        """
        validation = cls.validate_required(name=name)
        if validation:
            return validation

        model = CATALOGUE_OPTIONS.get(kind)
        option = (
            model.objects.filter(vertical=vertical, pk=option_id).first() if model else None
        )
        if option is None:
            return ServiceResult.failure(
                f"Option {option_id} not found",
                error_code="OPTION_NOT_FOUND",
            )

        previous = option.display_name
        option.set_display_name(name.strip())
        option.save()

        cls.get_logger().info(
            "Catalogue option renamed",
            extra={
                "vertical": str(vertical),
                "kind": kind,
                "option_id": option.pk,
                "previous_name": previous,
                "new_name": option.display_name,
            },
        )
        return ServiceResult.success(option)


class RegistrationService(BaseService):
    """Registration form submission."""

    @classmethod
    def submit(
        cls,
        vertical: Vertical | str,
        data: dict[str, Any],
    ) -> ServiceResult[RegistrationForm]:
        """
        Store a registration form.

        ``amount_paid`` is snapshotted from the pricing config when one
        is given; otherwise the submitted amount is used as-is.

        Args:
            vertical: Conference the form belongs to
            data: Validated serializer data (name, email, ..., pricing_config_id,
                amount_paid)

        Returns:
            ServiceResult with the stored RegistrationForm
        """
        logger = cls.get_logger()
        data = dict(data)
        pricing_config_id = data.pop("pricing_config_id", None)
        pricing_config = None

        try:
            if pricing_config_id is not None:
                pricing_config = PricingService.get_pricing_config(pricing_config_id, vertical)
                data["amount_paid"] = pricing_config.total_price
            elif data.get("amount_paid") is None:
                raise ValidationError(
                    "Either pricing_config_id or amount_paid is required",
                    error_code="AMOUNT_REQUIRED",
                )
        except (NotFoundError, ValidationError) as e:
            logger.warning(
                "Registration rejected",
                extra={"vertical": str(vertical), "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        with cls.atomic():
            form = RegistrationForm.objects.create(
                vertical=vertical,
                pricing_config=pricing_config,
                **data,
            )

        logger.info(
            "Registration form stored",
            extra={
                "registration_form_id": form.pk,
                "vertical": str(vertical),
                "amount_paid": str(form.amount_paid),
            },
        )
        return ServiceResult.success(form)
