"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


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


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class UnknownActionError(ValidationError):
    """Action string is not part of the vocabulary"""
    error_code = "UNKNOWN_ACTION"


class WorkflowValidationError(ValidationError):
    """Workflow graph failed structural validation"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class TicketNotFoundError(NotFoundError):
    """Ticket not found"""
    error_code = "TICKET_NOT_FOUND"


class FunctionalityNotFoundError(NotFoundError):
    """Functionality (or its workflow graph) not found"""
    error_code = "FUNCTIONALITY_NOT_FOUND"


class NodeNotFoundError(NotFoundError):
    """Target or predecessor node not found in workflow"""
    error_code = "NODE_NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    """Employee identities could not be resolved"""
    error_code = "EMPLOYEE_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class IllegalTransitionError(InvalidStateError):
    """Requested stage transition is not allowed by the workflow"""
    error_code = "ILLEGAL_TRANSITION"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# External Service Errors
class ExternalServiceError(DomainError):
    """External service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class EmailSendError(ExternalServiceError):
    """Email sending failed"""
    error_code = "EMAIL_SEND_ERROR"


# Attachment Errors
class AttachmentError(DomainError):
    """Attachment related error"""
    error_code = "ATTACHMENT_ERROR"


class AttachmentTooLargeError(AttachmentError):
    """Attachment exceeds max size"""
    error_code = "ATTACHMENT_TOO_LARGE"
    http_status = 413


class InvalidMimeTypeError(AttachmentError):
    """File type not allowed"""
    error_code = "INVALID_MIME_TYPE"
    http_status = 400
