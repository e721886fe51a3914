# backend/booking_engine/services/form_validator.py
"""
Patient form validation.

Every rule runs on every submission and all violations are returned
together, each scoped to its field, so the patient can fix the whole form in
one pass.
"""

from datetime import date
import re
from typing import List, Optional

from ..core.constants import (
    EMAIL_PATTERN,
    MAX_AGE_YEARS,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MIN_NAME_LENGTH,
    NAME_PATTERN,
    PHONE_PATTERN,
)
from ..core.exceptions import FormValidationError, ValidationError
from ..schemas.booking import PatientForm

_NAME_RE = re.compile(NAME_PATTERN)
_EMAIL_RE = re.compile(EMAIL_PATTERN)
_PHONE_RE = re.compile(PHONE_PATTERN)


def validate_name(name: str) -> Optional[ValidationError]:
    trimmed = (name or "").strip()
    if not trimmed:
        return ValidationError("name", "Name is required")
    if len(trimmed) < MIN_NAME_LENGTH:
        return ValidationError("name", f"Name must have at least {MIN_NAME_LENGTH} characters")
    if len(trimmed) > MAX_NAME_LENGTH:
        return ValidationError("name", f"Name must have at most {MAX_NAME_LENGTH} characters")
    if not _NAME_RE.match(trimmed):
        return ValidationError("name", "Name must contain only letters and spaces")
    return None


def validate_email(email: str) -> Optional[ValidationError]:
    if not email or not email.strip():
        return ValidationError("email", "Email is required")
    if not _EMAIL_RE.match(email.strip()):
        return ValidationError("email", "Invalid email")
    return None


def validate_phone(phone: str) -> Optional[ValidationError]:
    if not phone or not phone.strip():
        return ValidationError("phone", "Phone is required")
    if not _PHONE_RE.match(phone.strip()):
        return ValidationError("phone", "Phone must use the format (11) 99999-9999")
    return None


def validate_birth_date(birth_date: Optional[date], today: date) -> Optional[ValidationError]:
    if birth_date is None:
        return None
    if birth_date > today:
        return ValidationError("birth_date", "Birth date cannot be in the future")
    age = today.year - birth_date.year
    if age < 0 or age > MAX_AGE_YEARS:
        return ValidationError("birth_date", "Invalid birth date")
    return None


def validate_notes(notes: Optional[str]) -> Optional[ValidationError]:
    if notes and len(notes) > MAX_NOTES_LENGTH:
        return ValidationError("notes", f"Notes must have at most {MAX_NOTES_LENGTH} characters")
    return None


def validate_terms(terms_accepted: bool) -> Optional[ValidationError]:
    if not terms_accepted:
        return ValidationError("terms_accepted", "Booking terms must be accepted")
    return None


def collect_form_errors(form: PatientForm, today: date) -> List[ValidationError]:
    """Run every rule and return all violations in field order."""
    checks = (
        validate_name(form.name),
        validate_email(form.email),
        validate_phone(form.phone),
        validate_birth_date(form.birth_date, today),
        validate_notes(form.notes),
        validate_terms(form.terms_accepted),
    )
    return [error for error in checks if error is not None]


def validate_patient_form(form: PatientForm, today: date) -> None:
    """Raise FormValidationError carrying every violation, or return None."""
    errors = collect_form_errors(form, today)
    if errors:
        raise FormValidationError(errors)


def format_phone(value: str) -> str:
    """
    Progressive ``(NN) NNNNN-NNNN`` mask over whatever digits were typed.

    >>> format_phone("11999998888")
    '(11) 99999-8888'
    """
    digits = re.sub(r"\D", "", value or "")
    if len(digits) < 2:
        return digits
    formatted = f"({digits[:2]})"
    if len(digits) > 2:
        formatted += f" {digits[2:7]}"
        if len(digits) > 7:
            formatted += f"-{digits[7:11]}"
    return formatted
