"""Domain-specific exceptions"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainException):
    """Input is malformed or violates a business rule"""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(DomainException):
    """Requested entity does not exist"""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(DomainException):
    """Entity is not in the state the operation requires"""

    code = "CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 409,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class InternalError(DomainException):
    """Unexpected failure or programmer error"""

    pass


class LedgerWriteFailure(DomainException):
    """Ledger write failed; retryable, recorded as a failed outbox item"""

    code = "LEDGER_WRITE_FAILED"
    status_code = 502
