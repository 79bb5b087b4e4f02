"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Actor identity missing from the request"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class ForbiddenError(AuthorizationError):
    """Actor roles do not satisfy the action's allowed roles"""
    error_code = "FORBIDDEN"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class MissingRequiredFieldsError(ValidationError):
    """One or more required data keys are absent or empty"""
    error_code = "MISSING_REQUIRED_FIELDS"

    def __init__(self, fields: List[str], message: Optional[str] = None, **details: Any):
        super().__init__(
            message or f"Missing required fields: {', '.join(fields)}",
            details={"fields": list(fields), **details}
        )
        self.fields = list(fields)


class FieldTypeError(ValidationError):
    """Submitted values do not match the template's field schema"""
    error_code = "FIELD_TYPE_MISMATCH"


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


class StructuralError(WorkflowValidationError):
    """Template violates a structural invariant (publish time only)"""
    error_code = "STRUCTURAL_ERROR"

    def __init__(self, message: str, errors: List[Dict[str, Any]], warnings: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, details={"errors": errors, "warnings": warnings or []})
        self.errors = errors

    @property
    def kinds(self) -> List[str]:
        return [e["kind"] for e in self.errors]


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


class ProcessNotFoundError(NotFoundError):
    """Process instance not found"""
    error_code = "PROCESS_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict - reload and retry"""
    error_code = "CONCURRENCY_CONFLICT"


class InvalidStateError(ConflictError):
    """Operation not valid for the current lifecycle status"""
    error_code = "INVALID_STATE"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Engine Errors
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"
    http_status = 500


class ActionNotAvailableError(EngineError):
    """Action is not declared (or not enabled) for the current state"""
    error_code = "ACTION_NOT_AVAILABLE"
    http_status = 400


class InvariantViolationError(EngineError):
    """Persisted data is inconsistent with its bound template"""
    error_code = "INVARIANT_VIOLATION"
    http_status = 500


# External Service Errors
class ExternalServiceError(DomainError):
    """External service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class NotificationError(ExternalServiceError):
    """Notifier collaborator failed"""
    error_code = "NOTIFICATION_ERROR"
