"""
Domain errors raised by the reporting services.
Each error carries a machine-readable kind and the HTTP status it maps to.
"""
from typing import Any, Optional


class ReportingError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        out = {"kind": self.kind, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


class ValidationError(ReportingError):
    kind = "validation_error"
    status_code = 400


class NotFoundError(ReportingError):
    kind = "not_found"
    status_code = 404


class DependencyUnavailable(ReportingError):
    kind = "dependency_unavailable"
    status_code = 503


class ConflictError(ReportingError):
    kind = "conflict"
    status_code = 409
