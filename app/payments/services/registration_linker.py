"""
Links completed payments to the registration forms they settle.

Registration forms are stored before the payer is redirected to the
provider, so by the time a payment completes its form normally exists.
The linker finds the payer's most recent form in the record's vertical
and sets the one-to-one relation. Missing data is logged at critical
level and never fails the webhook.
"""

from __future__ import annotations

from django.db import transaction

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult

from conferences.models import RegistrationForm
from payments.models import PaymentRecord


class RegistrationLinker(BaseService):
    """Sets RegistrationForm.payment_record for completed payments."""

    @classmethod
    def link_after_payment(
        cls,
        record: PaymentRecord,
        event_email: str | None = None,
    ) -> RegistrationForm | None:
        """
        Link ``record`` to the payer's most recent registration form.

        No-op when the record already has a form. The payer email comes
        from the record, then from the event payload.

        Returns:
            The linked form, or None when nothing was linked. Never raises.
        """
        log = cls.get_logger()
        try:
            existing = record.linked_registration
            if existing is not None:
                log.debug(
                    "Payment already linked",
                    extra={"session_id": record.session_id, "form_id": existing.pk},
                )
                return existing

            email = record.customer_email or event_email
            if not email:
                log.critical(
                    "Cannot link registration: no payer email",
                    extra={"session_id": record.session_id, "record_id": record.pk},
                )
                return None

            form = RegistrationForm.objects.most_recent_for_email(email, vertical=record.vertical)
            if form is None:
                log.critical(
                    "Cannot link registration: no form for payer email",
                    extra={
                        "session_id": record.session_id,
                        "email": email,
                        "vertical": record.vertical,
                    },
                )
                return None

            if form.payment_record_id is not None and form.payment_record_id != record.pk:
                log.warning(
                    "Registration form already linked to another payment, relinking",
                    extra={
                        "form_id": form.pk,
                        "previous_record_id": form.payment_record_id,
                        "record_id": record.pk,
                    },
                )

            cls._link(form, record)
        except Exception:
            log.exception(
                "Registration linking failed",
                extra={"session_id": record.session_id},
            )
            return None

        log.info(
            "Registration linked to payment",
            extra={"form_id": form.pk, "session_id": record.session_id},
        )
        return form

    @classmethod
    def link_registration(cls, form_id: int, session_id: str) -> ServiceResult[RegistrationForm]:
        """
        Link a specific form and payment (administrative).

        Fails when either side is missing, or when the payment is already
        linked to a different form.
        """
        try:
            form = RegistrationForm.objects.filter(pk=form_id).first()
            if form is None:
                raise NotFoundError(
                    f"Registration form {form_id} not found",
                    error_code="REGISTRATION_NOT_FOUND",
                )
            record = PaymentRecord.objects.filter(session_id=session_id).first()
            if record is None:
                raise NotFoundError(
                    f"Payment record {session_id} not found",
                    error_code="PAYMENT_NOT_FOUND",
                )

            existing = record.linked_registration
            if existing is not None and existing.pk != form.pk:
                raise ConflictError(
                    "Payment is already linked to another registration",
                    error_code="PAYMENT_ALREADY_LINKED",
                    details={"form_id": existing.pk},
                )
            if form.payment_record_id not in (None, record.pk):
                cls.get_logger().warning(
                    "Registration form already linked to another payment, relinking",
                    extra={"form_id": form.pk, "previous_record_id": form.payment_record_id},
                )
            cls._link(form, record)
        except (NotFoundError, ConflictError) as e:
            return ServiceResult.from_exception(e)

        return ServiceResult.success(form)

    @staticmethod
    def _link(form: RegistrationForm, record: PaymentRecord) -> None:
        with transaction.atomic():
            form.payment_record = record
            form.save(update_fields=["payment_record", "updated_at"])
            record.save(update_fields=["updated_at"])
        record.registration_form = form
