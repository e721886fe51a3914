# backend/booking_engine/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

Every error carries a structured code and details so callers can always
explain which rule fired instead of surfacing a generic failure. Each class
knows how to convert itself into an HTTPException for the API layer.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationError(DomainException):
    """A single user-correctable, field-scoped validation failure."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field},
        )


class FormValidationError(DomainException):
    """All field violations of a submitted form, collected together."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, errors: List[ValidationError]) -> None:
        self.errors = list(errors)
        super().__init__(
            message=f"{len(self.errors)} field(s) failed validation",
            code="FORM_VALIDATION_ERROR",
            details={"errors": [{"field": e.field, "message": e.message} for e in self.errors]},
        )

    @property
    def fields(self) -> List[str]:
        return [error.field for error in self.errors]


class SlotUnavailableError(DomainException):
    """The chosen slot cannot be booked; the caller must refresh availability."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, block_reason: Optional[str], slot_id: Optional[str] = None) -> None:
        self.block_reason = block_reason
        self.slot_id = slot_id
        super().__init__(
            message=f"Slot is not available: {block_reason or 'unknown slot'}",
            code="SLOT_UNAVAILABLE",
            details={"block_reason": block_reason, "slot_id": slot_id},
        )


class ConflictError(DomainException):
    """Raised at the atomic reservation step when the slot was taken."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, existing_appointment_id: Optional[str], message: Optional[str] = None) -> None:
        self.existing_appointment_id = existing_appointment_id
        super().__init__(
            message=message or "This time slot conflicts with an existing appointment",
            code="BOOKING_CONFLICT",
            details={"existing_appointment_id": existing_appointment_id},
        )


class PolicyViolationError(DomainException):
    """A cancel or reschedule request falls inside the policy window."""

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(self, policy: str, required_hours: float, actual_hours: float) -> None:
        self.policy = policy
        self.required_hours = required_hours
        self.actual_hours = actual_hours
        super().__init__(
            message=(
                f"{policy.capitalize()} requires at least {required_hours:g} hours notice "
                f"({actual_hours:.2f} hours remaining)"
            ),
            code="POLICY_VIOLATION",
            details={
                "policy": policy,
                "required_hours": required_hours,
                "actual_hours": round(actual_hours, 4),
            },
        )


class InvalidTransitionError(DomainException):
    """A workflow action is not legal from the session's current state."""

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(self, current_state: str, action: str) -> None:
        self.current_state = current_state
        self.action = action
        super().__init__(
            message=f"Cannot {action} while session is {current_state}",
            code="INVALID_TRANSITION",
            details={"state": current_state, "action": action},
        )


class NotFoundError(DomainException):
    """A requested provider, appointment or slot does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class PersistenceError(DomainException):
    """Transient storage failure; the reservation may be retried."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, *, operation: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            code="PERSISTENCE_ERROR",
            details={"operation": operation} if operation else {},
        )


class ExternalServiceError(DomainException):
    """Payment or notification failure. Never invalidates a confirmed booking."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, message: str, *, status_code: Optional[int] = None) -> None:
        self.service = service
        self.upstream_status = status_code
        super().__init__(
            message=f"{service} failed: {message}",
            code="EXTERNAL_SERVICE_ERROR",
            details={"service": service, "upstream_status": status_code},
        )
