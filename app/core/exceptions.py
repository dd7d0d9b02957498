"""
Domain errors for the billing engine.

Each error carries a stable ``kind`` (the category clients branch on), a
specific ``code``, an HTTP status and machine-readable ``details``. The
handlers in ``app.main`` render them into the standard error envelope.
"""

from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for errors raised by billing services."""

    kind: str = "INTERNAL"
    status_code: int = 500
    default_code: str = "INTERNAL"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BillingError):
    """Bad input: missing fields, bad columns, unusable rows, unknown status."""
    kind = "VALIDATION"
    status_code = 400
    default_code = "VALIDATION"


class NotFoundError(BillingError):
    kind = "NOT_FOUND"
    status_code = 404
    default_code = "NOT_FOUND"


class StateConflictError(BillingError):
    """Requested transition is not allowed from the current state."""
    kind = "STATE_CONFLICT"
    status_code = 400
    default_code = "STATE_CONFLICT"


class ThrottledError(BillingError):
    kind = "THROTTLED"
    status_code = 400
    default_code = "THROTTLED"

    def __init__(self, message: str, *, remaining_minutes: int) -> None:
        super().__init__(message, details={"remaining_minutes": remaining_minutes})
        self.remaining_minutes = remaining_minutes


class SpreadsheetParseError(BillingError):
    """Upload could not be decoded as a spreadsheet."""
    kind = "PARSE"
    status_code = 400
    default_code = "PARSE"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        details = dict(details or {})
        details.setdefault("hint", "Re-export the sheet as .xlsx or UTF-8 .csv and upload it again")
        super().__init__(message, code=code, details=details)