from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import ValidationError

from gx_backend.schemas.contact import ContactForm, FieldError

BODY_FIELD = "body"


@dataclass(frozen=True)
class ValidationOutcome:
    """Either a validated ContactForm or the ordered field errors."""

    form: Optional[ContactForm] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.form is not None


def _error_message(error: dict) -> str:
    # Custom validators raise ValueError; report its text without pydantic's prefix.
    if error.get("type") == "value_error" and error.get("ctx", {}).get("error"):
        return str(error["ctx"]["error"])
    return error["msg"]


def _field_errors(exc: ValidationError) -> List[FieldError]:
    errors: List[FieldError] = []
    seen = set()
    for error in exc.errors():
        loc = error.get("loc") or ()
        name = str(loc[0]) if loc else BODY_FIELD
        if name in seen:
            continue
        seen.add(name)
        errors.append(FieldError(field=name, message=_error_message(error)))
    return errors


def validate_contact_form(raw: Any) -> ValidationOutcome:
    """Validate an untrusted payload against the ContactForm schema.

    Errors come back one per failing field, in the order the fields are
    declared on ContactForm. Unknown keys are ignored.
    """
    try:
        form = ContactForm.model_validate(raw)
    except ValidationError as exc:
        return ValidationOutcome(errors=_field_errors(exc))
    return ValidationOutcome(form=form)
