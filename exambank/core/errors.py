"""
Exam Bank Exceptions

Error taxonomy shared by the services and mapped to HTTP responses in
``exambank.main``.
"""
from typing import Any, Dict, Optional


class ExamBankError(Exception):
    """Base exception for exam bank errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "EXAM_BANK_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
        }


class Unauthorized(ExamBankError):
    """Raised when the caller lacks the role an operation requires."""

    status_code = 401

    def __init__(self, message: str = "UNAUTHORIZED ACCESS.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="UNAUTHORIZED", details=details)


class InvalidRequest(ExamBankError):
    """Raised on validation failures and scheduling conflicts."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, code="BAD_REQUEST", details=error_details)


class Forbidden(ExamBankError):
    """Raised when an action is attempted outside its time window."""

    status_code = 403

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="FORBIDDEN", details=details)


class NotFound(ExamBankError):
    """Raised when a referenced entity does not exist."""

    status_code = 404

    def __init__(
        self,
        entity: str,
        entity_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        msg = message or (f"{entity} with id {entity_id} not found" if entity_id else f"{entity} not found")
        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class DataAccessError(ExamBankError):
    """Raised when a query fails for reasons other than a missing entity."""

    status_code = 500

    def __init__(self, message: str = "Data access failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="DATA_ACCESS_ERROR", details=details)
