"""
Contact form relay.

Public endpoint that validates a contact-form submission, renders the
notification email and relays it to the GX team through the SMTP relay.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request, status
from starlette.formparsers import FormParser

from gx_backend.api.deps import get_contact_service
from gx_backend.api.routes.health import utc_timestamp
from gx_backend.core.config import settings
from gx_backend.core.errors import (
    ContactValidationError,
    DispatchFailedError,
    MalformedBodyError,
    PayloadTooLargeError,
    ServiceUnavailableError,
)
from gx_backend.core.rate_limiter import check_send_email_rate_limit
from gx_backend.schemas.contact import (
    ErrorResponse,
    SendEmailResponse,
    ValidationErrorResponse,
)
from gx_backend.services.contact_service import ContactService
from gx_backend.services.email_template import render_contact_email
from gx_backend.services.validation import validate_contact_form

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"
SUCCESS_MESSAGE = (
    "Your message has been sent successfully! We will get back to you soon."
)


async def read_limited_body(request: Request, limit: int) -> bytes:
    """Read the request body, aborting with 413 as soon as it exceeds limit."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError()

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError()
    return bytes(body)


async def _replay(body: bytes) -> AsyncIterator[bytes]:
    yield body


async def read_submission(request: Request) -> Any:
    """Decode the request body as JSON or a urlencoded form.

    Bodies of any other content type are not parsed and decode to an empty
    object, as does an empty body, so that required-field errors are
    reported instead of a parse error.
    """
    body = await read_limited_body(request, settings.MAX_BODY_BYTES)

    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if media_type == FORM_CONTENT_TYPE:
        form = await FormParser(request.headers, _replay(body)).parse()
        return dict(form)

    if media_type != JSON_CONTENT_TYPE or not body.strip():
        return {}

    try:
        return json.loads(body)
    except ValueError as exc:
        logger.warning(
            "Invalid JSON in request body: %s",
            exc,
            extra={"event_type": "contact_malformed_body"},
        )
        raise MalformedBodyError(cause=exc) from exc


@router.post(
    "/send-email",
    response_model=SendEmailResponse,
    status_code=status.HTTP_200_OK,
    summary="Send contact form message",
    description="Validates a contact form submission and relays it by email.",
    responses={
        400: {"model": ValidationErrorResponse, "description": "Validation error"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Email could not be sent"},
    },
    dependencies=[Depends(check_send_email_rate_limit)],
)
async def send_contact_email(
    request: Request,
    service: ContactService = Depends(get_contact_service),
) -> SendEmailResponse:
    raw = await read_submission(request)

    outcome = validate_contact_form(raw)
    if not outcome.ok:
        logger.info(
            "Contact form rejected fields=%s",
            ",".join(error.field for error in outcome.errors),
            extra={"event_type": "contact_validation_failed"},
        )
        raise ContactValidationError(outcome.errors)

    form = outcome.form
    try:
        rendered = render_contact_email(form)
        result = await service.send(rendered, reply_to=form.email)
    except ServiceUnavailableError as exc:
        logger.error(
            "SMTP connection failed: %s",
            exc.cause,
            exc_info=exc.cause,
            extra={"event_type": "contact_smtp_unavailable"},
        )
        raise
    except DispatchFailedError as exc:
        logger.error(
            "Error sending email: %s",
            exc.cause,
            exc_info=exc.cause,
            extra={"event_type": "contact_dispatch_failed"},
        )
        raise
    except Exception as exc:
        logger.error(
            "Error sending email: %s",
            exc,
            exc_info=exc,
            extra={"event_type": "contact_dispatch_failed"},
        )
        raise DispatchFailedError(cause=exc) from exc

    logger.info(
        "Email sent successfully id=%s",
        result.message_id,
        extra={
            "event_type": "contact_email_sent",
            "message_id": result.message_id,
            "submitter_email": form.email,
            "submitter_name": form.name,
            "submitted_at": utc_timestamp(),
        },
    )

    return SendEmailResponse(message=SUCCESS_MESSAGE, message_id=result.message_id)
