"""
GX Services Module.

Services:
    - ContactService: relays rendered contact emails over SMTP
    - render_contact_email: builds subject, HTML and text bodies
    - validate_contact_form: checks raw submissions against ContactForm
"""

from .contact_service import ContactService
from .email_template import render_contact_email
from .validation import ValidationOutcome, validate_contact_form

__all__ = [
    "ContactService",
    "ValidationOutcome",
    "render_contact_email",
    "validate_contact_form",
]
