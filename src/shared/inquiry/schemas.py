"""Pydantic schemas for the inquiry and admin APIs."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SubmitResponse(BaseModel):
    """Schema for submission response."""
    message: str


class InquiryResponse(BaseModel):
    """Stored inquiry as returned to admins. Text fields are HTML-escaped."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    placement: str
    size: str
    description: str
    date_from: date
    date_to: date
    attachment_url: Optional[str] = None
    submitter_id: Optional[str] = None
    created_at: datetime


class AbuseLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_address: str
    reason: str
    created_at: datetime
