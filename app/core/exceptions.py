"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and an optional details dict, so services can convert them
into ServiceResult failures and views into JSON bodies the same way.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or business-rule validation failures
    ├── NotFoundError - Requested record does not exist
    ├── ConflictError - State conflicts (locks, stale versions, transitions)
    └── ExternalServiceError - Payment provider / third-party failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")

    raise NotFoundError(
        "Registration form not found",
        error_code="REGISTRATION_NOT_FOUND",
        details={"registration_form_id": form_id},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    DRF still handles API-layer problems (serializer errors, permissions).
    These exceptions are for the service layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, amounts, provider codes)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Payment record not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"session_id": "cs_test_123"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed input and for business-rule violations such as a
    checkout amount that does not match its pricing configuration.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested record is not found.

    Example:
        form = RegistrationForm.objects.filter(pk=form_id).first()
        if form is None:
            raise NotFoundError(
                f"Registration form {form_id} not found",
                error_code="REGISTRATION_NOT_FOUND",
                details={"registration_form_id": form_id},
            )
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current record state.

    Covers lock contention, optimistic version mismatches and status
    transitions that the lifecycle does not allow. Maps to HTTP 409.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for Stripe/PayPal failures, network timeouts and unexpected
    provider responses. Log the provider error; do not expose raw
    provider payloads to API clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
