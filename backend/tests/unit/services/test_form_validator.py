"""Tests for patient form rules."""

from datetime import date

import pytest

from booking_engine.core.exceptions import FormValidationError
from booking_engine.schemas.booking import PatientForm
from booking_engine.services.form_validator import (
    collect_form_errors,
    format_phone,
    validate_birth_date,
    validate_email,
    validate_name,
    validate_patient_form,
    validate_phone,
)

TODAY = date(2024, 1, 1)


def test_valid_form_passes(valid_form):
    assert collect_form_errors(valid_form, TODAY) == []
    validate_patient_form(valid_form, TODAY)


def test_every_violation_is_collected():
    form = PatientForm(
        name="A",
        email="not-an-email",
        phone="123",
        birth_date=date(2030, 1, 1),
        notes="x" * 501,
        terms_accepted=False,
    )

    with pytest.raises(FormValidationError) as exc_info:
        validate_patient_form(form, TODAY)

    assert exc_info.value.fields == [
        "name",
        "email",
        "phone",
        "birth_date",
        "notes",
        "terms_accepted",
    ]
    assert len(exc_info.value.details["errors"]) == 6


class TestName:
    @pytest.mark.parametrize("name", ["Jo", "  Ana  ", "João da Silva", "Zoë Müller"])
    def test_accepts(self, name):
        assert validate_name(name) is None

    @pytest.mark.parametrize("name", ["", "   ", "A", "John3", "Ann-Marie", "x" * 101])
    def test_rejects(self, name):
        error = validate_name(name)
        assert error is not None
        assert error.field == "name"


class TestContact:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last@clinic.com.br"])
    def test_email_accepts(self, email):
        assert validate_email(email) is None

    @pytest.mark.parametrize("email", ["", "plain", "a@b", "a b@c.com", "@c.com"])
    def test_email_rejects(self, email):
        assert validate_email(email) is not None

    @pytest.mark.parametrize("phone", ["(11) 99999-8888", "(21) 3333-4444"])
    def test_phone_accepts(self, phone):
        assert validate_phone(phone) is None

    @pytest.mark.parametrize("phone", ["", "11999998888", "(11)99999-8888", "(11) 999-8888"])
    def test_phone_rejects(self, phone):
        assert validate_phone(phone) is not None


class TestBirthDate:
    def test_optional(self):
        assert validate_birth_date(None, TODAY) is None

    def test_today_is_allowed(self):
        assert validate_birth_date(TODAY, TODAY) is None

    def test_future_is_rejected(self):
        assert validate_birth_date(date(2024, 1, 2), TODAY) is not None

    def test_age_over_limit_is_rejected(self):
        assert validate_birth_date(date(1890, 1, 1), TODAY) is not None
        assert validate_birth_date(date(1904, 6, 1), TODAY) is None


def test_notes_at_limit_are_accepted(valid_form):
    form = valid_form.model_copy(update={"notes": "x" * 500})
    assert collect_form_errors(form, TODAY) == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("1", "1"),
        ("11", "(11)"),
        ("119", "(11) 9"),
        ("1199999", "(11) 99999"),
        ("11999998", "(11) 99999-8"),
        ("11999998888", "(11) 99999-8888"),
        ("(11) 99999-88889999", "(11) 99999-8888"),
        ("tel 11 3333 4444", "(11) 33334-444"),
    ],
)
def test_format_phone(raw, expected):
    assert format_phone(raw) == expected
