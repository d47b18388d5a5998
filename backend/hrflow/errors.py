"""
Error kinds raised by the stage operations.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with; nothing here is retried automatically.
"""

from typing import Optional


class HRFlowError(Exception):
    """Base exception for pipeline errors."""

    code = "HRFLOW_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class InvalidTransition(HRFlowError):
    """Action is not legal from the record's current status."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, record: str, status: str, action: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {action} {record} while it is {status}",
            details={"record": record, "status": status, "action": action},
        )


class AlreadyTerminal(HRFlowError):
    """Action attempted on a finalized record."""

    code = "ALREADY_TERMINAL"
    status_code = 409

    def __init__(self, record: str, status: str, action: str):
        super().__init__(
            f"{record} is already {status}; {action} is not allowed",
            details={"record": record, "status": status, "action": action},
        )


class RecordExpired(HRFlowError):
    code = "EXPIRED"
    status_code = 410

    def __init__(self, record: str, record_id: int):
        super().__init__(
            f"{record} {record_id} has expired",
            details={"record": record, "id": record_id},
        )


class OfferExpired(RecordExpired):
    code = "OFFER_EXPIRED"

    def __init__(self, offer_id: int):
        super().__init__("offer", offer_id)


class ContractExpired(RecordExpired):
    code = "CONTRACT_EXPIRED"

    def __init__(self, contract_id: int):
        super().__init__("contract", contract_id)


class ValidationError(HRFlowError):
    """Missing or malformed required input."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else {})


class Conflict(HRFlowError):
    """A concurrent write won, or a uniqueness rule would be broken."""

    code = "CONFLICT"
    status_code = 409


class RenderError(HRFlowError):
    code = "RENDER_ERROR"
    status_code = 502


class NotFound(HRFlowError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier):
        super().__init__(
            f"{resource} {identifier} not found",
            details={"resource": resource, "id": identifier},
        )


class Forbidden(HRFlowError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You don't have permission to perform this action"):
        super().__init__(message)
