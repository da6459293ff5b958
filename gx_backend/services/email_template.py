"""
Contact notification email rendering.

Builds the subject, HTML and plain-text bodies sent to the GX team for a
validated ContactForm. Rendering is pure: the same form and the same
``submitted_at`` instant always produce the same output.
"""
from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Optional
from zoneinfo import ZoneInfo

from gx_backend.schemas.contact import ContactForm, EmailRenderOutput

SUBJECT_PREFIX = "New Contact Form Submission - "
COMPANY_NAME = "GX Integrated Services"
NOT_PROVIDED = "Not provided"

SAST = ZoneInfo("Africa/Johannesburg")

_HTML_STYLE = """
          body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
          .container { max-width: 600px; margin: 0 auto; padding: 20px; }
          .header { background: linear-gradient(135deg, #0a1628 0%, #00d4aa 100%); color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0; }
          .content { background: #f8f9fa; padding: 30px; border-radius: 0 0 8px 8px; }
          .field { margin-bottom: 20px; }
          .label { font-weight: bold; color: #0a1628; margin-bottom: 5px; display: block; }
          .value { background: white; padding: 10px; border-radius: 4px; border-left: 4px solid #00d4aa; }
          .message-box { background: white; padding: 15px; border-radius: 4px; border-left: 4px solid #00d4aa; white-space: pre-wrap; }
          .footer { text-align: center; margin-top: 20px; color: #666; font-size: 14px; }
"""


def format_submission_timestamp(moment: datetime) -> str:
    """Format an instant the en-ZA way in South Africa Standard Time.

    Example: ``19 October 2026 at 14:05 (SAST)``. Naive datetimes are
    treated as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(SAST)
    return f"{local.day} {local:%B} {local.year} at {local:%H:%M} (SAST)"


def _html_field(label: str, value_html: str) -> str:
    return f"""
            <div class="field">
              <span class="label">{label}</span>
              <div class="value">{value_html}</div>
            </div>
"""


def _render_html(form: ContactForm, service_label: str, submitted: str) -> str:
    name = escape(form.name)
    email = escape(form.email)

    fields = [
        _html_field("&#128100; Full Name:", name),
        _html_field(
            "&#128231; Email Address:", f'<a href="mailto:{email}">{email}</a>'
        ),
    ]
    # Optional blocks are left out entirely when empty.
    if form.phone:
        phone = escape(form.phone)
        fields.append(
            _html_field("&#128241; Phone Number:", f'<a href="tel:{phone}">{phone}</a>')
        )
    if form.company:
        fields.append(_html_field("&#127970; Company:", escape(form.company)))
    fields.append(_html_field("&#127919; Service Interest:", escape(service_label)))

    return f"""<!DOCTYPE html>
<html>
      <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>New Contact Form Submission</title>
        <style>{_HTML_STYLE}        </style>
      </head>
      <body>
        <div class="container">
          <div class="header">
            <h1>&#128276; New Contact Form Submission</h1>
            <p>{COMPANY_NAME}</p>
          </div>
          <div class="content">{"".join(fields)}
            <div class="field">
              <span class="label">&#128172; Message:</span>
              <div class="message-box">{escape(form.message)}</div>
            </div>

            <div class="footer">
              <p><strong>Submitted:</strong> {submitted}</p>
              <p>This email was sent from the {COMPANY_NAME} contact form.</p>
            </div>
          </div>
        </div>
      </body>
</html>
"""


def _render_text(form: ContactForm, service_label: str, submitted: str) -> str:
    lines = [
        f"New Contact Form Submission - {COMPANY_NAME}",
        "",
        f"Name: {form.name}",
        f"Email: {form.email}",
        f"Phone: {form.phone or NOT_PROVIDED}",
        f"Company: {form.company or NOT_PROVIDED}",
        f"Service Interest: {service_label}",
        "",
        "Message:",
        form.message,
        "",
        f"Submitted: {submitted}",
    ]
    return "\n".join(lines) + "\n"


def render_contact_email(
    form: ContactForm, submitted_at: Optional[datetime] = None
) -> EmailRenderOutput:
    """Render the notification email for a validated submission."""
    if submitted_at is None:
        submitted_at = datetime.now(timezone.utc)

    service_label = form.service.label
    submitted = format_submission_timestamp(submitted_at)

    return EmailRenderOutput(
        subject=f"{SUBJECT_PREFIX}{form.name}",
        html=_render_html(form, service_label, submitted),
        text=_render_text(form, service_label, submitted),
    )
