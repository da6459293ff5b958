from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ServiceInterest(str, Enum):
    """Service a submitter is enquiring about."""

    PROJECT_MANAGEMENT = "project-management"
    PROCUREMENT = "procurement"
    REAL_ESTATE = "real-estate"
    CONSULTATION = "consultation"
    OTHER = "other"
    UNSPECIFIED = ""

    @property
    def label(self) -> str:
        return SERVICE_LABELS[self]


SERVICE_LABELS = {
    ServiceInterest.PROJECT_MANAGEMENT: "Project Management",
    ServiceInterest.PROCUREMENT: "Procurement Services",
    ServiceInterest.REAL_ESTATE: "Real Estate Management",
    ServiceInterest.CONSULTATION: "General Consultation",
    ServiceInterest.OTHER: "Other",
    ServiceInterest.UNSPECIFIED: "Not specified",
}


class ContactForm(BaseModel):
    """A contact-form submission that passed validation."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = ""
    company: str = Field(default="", max_length=100)
    service: ServiceInterest = ServiceInterest.UNSPECIFIED
    message: str = Field(..., min_length=10, max_length=2000)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("phone")
    @classmethod
    def phone_length(cls, v: str) -> str:
        if v and not 10 <= len(v) <= 20:
            raise ValueError("Phone number must be between 10 and 20 characters")
        return v


class FieldError(BaseModel):
    field: str
    message: str


class EmailRenderOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    html: str
    text: str


class DispatchResult(BaseModel):
    message_id: str


class SendEmailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    message_id: str = Field(..., serialization_alias="messageId")


class ValidationErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: List[FieldError]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    environment: str
