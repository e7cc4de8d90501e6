"""Pydantic schemas for authentication requests and responses."""

from pydantic import BaseModel, EmailStr
from typing import Optional


class SignInRequest(BaseModel):
    """Sign-in request schema."""
    email: EmailStr
    password: str


class SignInResponse(BaseModel):
    """Session material returned after a successful sign-in."""
    user_id: str
    email: str
    full_name: str
    role: str
    access_token: Optional[str] = None
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
