"""
Assessment error taxonomy

Every error carries the HTTP status it maps to and a stable machine code,
so the API layer can render it without knowing the individual classes.
"""


class AssessmentError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class Unauthorized(AssessmentError):
    """Missing, invalid or expired credential"""
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(AssessmentError):
    """Authenticated but not entitled"""
    status_code = 403
    code = "FORBIDDEN"


class NotFound(AssessmentError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(AssessmentError):
    """Malformed input, the caller can correct the request"""
    status_code = 400
    code = "VALIDATION_ERROR"


class AttemptLimitExceeded(AssessmentError):
    status_code = 409
    code = "ATTEMPT_LIMIT_EXCEEDED"


class PersistenceError(AssessmentError):
    """Store unavailable. Caller should retry with backoff."""
    status_code = 503
    code = "PERSISTENCE_ERROR"


class StoreConflict(Exception):
    """
    Raised by a store when a conditional write loses against a concurrent one.
    Never leaves the engine.
    """
