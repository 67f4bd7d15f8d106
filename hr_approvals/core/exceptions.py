"""
Domain errors raised by the approval engine services.

Every error carries an HTTP status and a stable error_code so the API layer
can render it without knowing which service raised it.
"""
from typing import Any, Dict, Optional


class ApprovalError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "APPROVAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(ApprovalError):
    """Malformed chain, delegation window or request input."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details
        )


class NotFound(ApprovalError):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )


class NotEligible(ApprovalError):
    """Actor is neither the manager at the current rank nor an active delegate of them."""
    def __init__(self, message: str = "You are not an eligible approver for the current step"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="NOT_ELIGIBLE"
        )


class StaleState(ApprovalError):
    """The request moved on between the caller's read and its write."""
    def __init__(self, message: str = "This request was already acted upon. Refresh and try again."):
        super().__init__(
            message=message,
            status_code=409,
            error_code="STALE_STATE"
        )


class InvalidTransition(ApprovalError):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_TRANSITION"
        )


class ReasonRequired(ApprovalError):
    def __init__(self, message: str = "A reason is required for this action"):
        super().__init__(
            message=message,
            status_code=400,
            error_code="REASON_REQUIRED"
        )


class AuthorizationDenied(ApprovalError):
    """Actor lacks the capability for the operation."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )
