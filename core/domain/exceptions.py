"""
Domain exceptions.

Domain exceptions represent business rule violations
and domain-specific error conditions.
"""
from typing import Any, Dict, List, Optional, Sequence


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    def __init__(self, message: str, code: str = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__

    def details(self) -> Optional[Dict[str, Any]]:
        """Structured payload for API responses, if any."""
        return None


class ValidationError(DomainException):
    """
    Raised for user-correctable input problems.

    Carries every human-readable message so callers can surface them verbatim.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[Sequence[str]] = None,
        warnings: Optional[Sequence[str]] = None,
        code: str = "VALIDATION_FAILED",
    ):
        super().__init__(message, code=code)
        self.errors: List[str] = list(errors) if errors else [message]
        self.warnings: List[str] = list(warnings or [])

    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors, "warnings": self.warnings}


class ConflictError(DomainException):
    """Raised when a proposed grant collides with existing grants."""

    def __init__(self, message: str, conflicts: Optional[Sequence[Any]] = None):
        super().__init__(message, code="LICENSE_CONFLICT")
        self.conflicts = list(conflicts or [])

    def details(self) -> Dict[str, Any]:
        return {
            "conflicts": [
                c.to_dict() if hasattr(c, "to_dict") else c for c in self.conflicts
            ]
        }


class LicensePermissionError(DomainException):
    """Raised when the actor lacks the role or ownership an action requires."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, code="PERMISSION_DENIED")


class StateTransitionError(DomainException):
    """Raised for an illegal edge in the status graph."""

    def __init__(self, message: str, code: str = "INVALID_STATUS_TRANSITION"):
        super().__init__(message, code=code)


class TransitionRequirementError(StateTransitionError):
    """Raised when a legal edge has an unmet per-state requirement."""

    def __init__(self, message: str):
        super().__init__(message, code="REQUIREMENT_NOT_MET")


class NotFoundError(DomainException):
    """Raised when a referenced record does not exist or is logically deleted."""

    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code)


class LicenseNotFoundError(NotFoundError):
    """Raised when a license is not found."""

    def __init__(self, message: str = "License not found"):
        super().__init__(message, code="LICENSE_NOT_FOUND")


class AmendmentNotFoundError(NotFoundError):
    """Raised when an amendment is not found."""

    def __init__(self, message: str = "Amendment not found"):
        super().__init__(message, code="AMENDMENT_NOT_FOUND")


class ExtensionNotFoundError(NotFoundError):
    """Raised when an extension request is not found."""

    def __init__(self, message: str = "Extension request not found"):
        super().__init__(message, code="EXTENSION_NOT_FOUND")


class RenewalOfferNotFoundError(NotFoundError):
    """Raised when a renewal offer is not found on the license."""

    def __init__(self, message: str = "Renewal offer not found"):
        super().__init__(message, code="RENEWAL_OFFER_NOT_FOUND")


class AssetNotFoundError(NotFoundError):
    """Raised when an IP asset is not found."""

    def __init__(self, message: str = "IP asset not found"):
        super().__init__(message, code="ASSET_NOT_FOUND")


class BrandNotFoundError(NotFoundError):
    """Raised when a brand is not found."""

    def __init__(self, message: str = "Brand not found"):
        super().__init__(message, code="BRAND_NOT_FOUND")


class OfferNotPendingError(ValidationError):
    """Raised when accepting an offer that was already decided."""

    def __init__(self, message: str):
        super().__init__(message, code="OFFER_NOT_PENDING")


class OfferExpiredError(ValidationError):
    """Raised when accepting an offer past its expiry."""

    def __init__(self, message: str = "Renewal offer has expired"):
        super().__init__(message, code="OFFER_EXPIRED")


class IdempotencyConflictError(DomainException):
    """Raised when a request with the same idempotency key is still running."""

    def __init__(self, message: str = "A request with this idempotency key is in progress"):
        super().__init__(message, code="REQUEST_IN_PROGRESS")
