"""
Domain errors raised by the service layer.

Each error carries the HTTP status and a stable machine-readable code; the
API layer turns them into JSON responses.
"""
from typing import List, Optional


class PromotionServiceError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code


class ValidationFailed(PromotionServiceError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidFile(PromotionServiceError):
    status_code = 400
    error_code = "INVALID_FILE"


class CSVValidationError(PromotionServiceError):
    status_code = 400
    error_code = "CSV_VALIDATION_ERROR"

    def __init__(self, errors: List[str]):
        super().__init__(f"CSV validation failed: {', '.join(errors)}")
        self.errors = list(errors)


class ImportNotFound(PromotionServiceError):
    status_code = 400
    error_code = "CSV_NOT_FOUND"


class NotFound(PromotionServiceError):
    status_code = 404
    error_code = "NOT_FOUND"


class Conflict(PromotionServiceError):
    status_code = 409
    error_code = "DUPLICATE_ENTRY"


def is_unique_violation(exc: Exception) -> bool:
    """True when a database IntegrityError comes from a unique constraint."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(orig if orig is not None else exc).lower()
