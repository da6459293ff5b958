from fastapi import Request

from gx_backend.services.contact_service import ContactService


def get_contact_service(request: Request) -> ContactService:
    """Return the ContactService built once in the app lifespan."""
    service = getattr(request.app.state, "contact_service", None)
    if service is None:
        service = ContactService.from_settings()
        request.app.state.contact_service = service
    return service
