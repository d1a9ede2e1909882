"""
Exceptions for the Gram Panchayat services
==========================================

Services raise these; the API layer maps each one to an HTTP status in
``gram_panchayat.main``. None of them is retried internally. ``ConflictError``
is the only one a caller may safely retry unchanged.

Usage:
    from gram_panchayat.exceptions import NotFoundError

    if rec is None:
        raise NotFoundError("Application", application_id)
"""

from typing import Any, Dict, Optional


class PanchayatError(Exception):
    """Base exception for all Gram Panchayat errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PanchayatError):
    """Caller could not be authenticated"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidTokenError(AuthenticationError):
    """Bearer token is missing, malformed, expired or names an unknown principal"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class InvalidCredentialsError(AuthenticationError):
    """Email/secret pair did not match"""

    def __init__(self):
        super().__init__("Invalid email or password")
        self.code = "INVALID_CREDENTIALS"


class AuthorizationError(PanchayatError):
    """Actor lacks the role required for this action"""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors
# ============================================

class NotFoundError(PanchayatError):
    """Entity absent"""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class EmailAlreadyRegisteredError(PanchayatError):
    def __init__(self, email: str):
        super().__init__(
            "Email is already registered",
            code="EMAIL_EXISTS",
            details={"email": email}
        )


# ============================================
# Lifecycle Errors
# ============================================

class ValidationError(PanchayatError):
    """Malformed input"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else None
        )


class DuplicateApplicationError(PanchayatError):
    """Citizen already has an open application for this service"""

    def __init__(self, citizen_id: str, service_id: str):
        super().__init__(
            "An open application for this service already exists",
            code="DUPLICATE_APPLICATION",
            details={"citizen_id": citizen_id, "service_id": service_id}
        )


class InvalidTransitionError(PanchayatError):
    """Target status is not reachable from the current status"""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move application from '{current}' to '{target}'",
            code="INVALID_TRANSITION",
            details={"current": current, "target": target}
        )


class ConflictError(PanchayatError):
    """Lost an optimistic-concurrency race; safe to retry"""

    def __init__(self, message: str = "The record was modified concurrently, please retry",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)
