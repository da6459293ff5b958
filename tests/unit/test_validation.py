"""Tests for contact form validation and normalization."""
import pytest

from gx_backend.schemas.contact import ServiceInterest
from gx_backend.services.validation import validate_contact_form


def _payload(**overrides):
    payload = {
        "name": "Jo Doe",
        "email": "jo@example.com",
        "message": "Hello, I need help.",
    }
    payload.update(overrides)
    return payload


def test_minimal_payload_is_valid():
    outcome = validate_contact_form(_payload())

    assert outcome.ok
    assert outcome.errors == []
    form = outcome.form
    assert form.name == "Jo Doe"
    assert form.phone == ""
    assert form.company == ""
    assert form.service is ServiceInterest.UNSPECIFIED


def test_email_is_trimmed_and_lowercased():
    outcome = validate_contact_form(_payload(email="  Jo.Doe@Example.COM  "))

    assert outcome.ok
    assert outcome.form.email == "jo.doe@example.com"


def test_text_fields_are_trimmed():
    outcome = validate_contact_form(
        _payload(
            name="  Jo Doe  ",
            phone=" 011 555 0100 ",
            company="  Acme (Pty) Ltd ",
            message="   Hello, I need help.   ",
        )
    )

    assert outcome.ok
    assert outcome.form.name == "Jo Doe"
    assert outcome.form.phone == "011 555 0100"
    assert outcome.form.company == "Acme (Pty) Ltd"
    assert outcome.form.message == "Hello, I need help."


def test_full_payload_with_every_field():
    outcome = validate_contact_form(
        _payload(
            phone="+27 11 555 0100",
            company="Acme",
            service="real-estate",
        )
    )

    assert outcome.ok
    assert outcome.form.service is ServiceInterest.REAL_ESTATE


def test_empty_optional_fields_are_preserved():
    outcome = validate_contact_form(_payload(phone="", company="", service=""))

    assert outcome.ok
    assert outcome.form.phone == ""
    assert outcome.form.company == ""
    assert outcome.form.service is ServiceInterest.UNSPECIFIED


def test_unknown_fields_are_ignored():
    outcome = validate_contact_form(_payload(newsletter=True, utm_source="ads"))

    assert outcome.ok
    assert not hasattr(outcome.form, "newsletter")


@pytest.mark.parametrize("message", ["short", "x" * 9, "x" * 2001])
def test_message_length_out_of_bounds(message):
    outcome = validate_contact_form(_payload(message=message))

    assert not outcome.ok
    assert [error.field for error in outcome.errors] == ["message"]


@pytest.mark.parametrize("message", ["x" * 10, "x" * 2000])
def test_message_length_boundaries_accepted(message):
    assert validate_contact_form(_payload(message=message)).ok


def test_message_length_checked_after_trimming():
    outcome = validate_contact_form(_payload(message="   short    "))

    assert not outcome.ok
    assert outcome.errors[0].field == "message"


def test_errors_follow_field_declaration_order():
    outcome = validate_contact_form(
        {"message": "short", "email": "bad", "name": "J"}
    )

    assert not outcome.ok
    assert [error.field for error in outcome.errors] == ["name", "email", "message"]
    assert all(error.message for error in outcome.errors)


def test_missing_required_fields():
    outcome = validate_contact_form({})

    assert [error.field for error in outcome.errors] == ["name", "email", "message"]


@pytest.mark.parametrize("phone", ["12345", "1" * 21])
def test_phone_length_when_present(phone):
    outcome = validate_contact_form(_payload(phone=phone))

    assert not outcome.ok
    assert outcome.errors[0].field == "phone"
    assert outcome.errors[0].message == (
        "Phone number must be between 10 and 20 characters"
    )


def test_company_too_long():
    outcome = validate_contact_form(_payload(company="c" * 101))

    assert [error.field for error in outcome.errors] == ["company"]


def test_unknown_service_rejected():
    outcome = validate_contact_form(_payload(service="landscaping"))

    assert [error.field for error in outcome.errors] == ["service"]


def test_name_too_long():
    outcome = validate_contact_form(_payload(name="n" * 101))

    assert [error.field for error in outcome.errors] == ["name"]


def test_non_string_value_rejected():
    outcome = validate_contact_form(_payload(name=None))

    assert [error.field for error in outcome.errors] == ["name"]


@pytest.mark.parametrize("raw", [["not", "an", "object"], "text", 42, None])
def test_non_object_payload(raw):
    outcome = validate_contact_form(raw)

    assert not outcome.ok
    assert [error.field for error in outcome.errors] == ["body"]
