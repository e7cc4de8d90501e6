"""Authentication routes: sign-in and sign-out for studio staff."""

import logging
import time
from collections import deque
from datetime import datetime
from threading import Lock
from typing import Deque, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.shared.auth.auth import create_access_token, verify_password
from src.shared.auth.database import get_db, User
from src.shared.auth.dependencies import Role
from src.shared.auth.schemas import MessageResponse, SignInRequest, SignInResponse
from src.shared.config import get_settings
from src.shared.errors import AuthenticationError, RateLimitError, ServiceError
from src.shared.inquiry.rate_limit import get_client_address

router = APIRouter(tags=["auth"])

# Sign-in attempts per client address (in-memory, per process)
SIGN_IN_WINDOW_SECONDS = 60
SIGN_IN_MAX_ATTEMPTS = 5
_sign_in_attempts: Dict[str, Deque[float]] = {}
_sign_in_lock = Lock()


def check_sign_in_rate_limit(client_address: str, now: Optional[float] = None) -> None:
    """Sliding-window cap on sign-in attempts to slow password guessing."""
    now = time.time() if now is None else now
    cutoff = now - SIGN_IN_WINDOW_SECONDS
    with _sign_in_lock:
        # Drop every address whose attempts have all aged out
        for address in list(_sign_in_attempts):
            request_times = _sign_in_attempts[address]
            while request_times and request_times[0] <= cutoff:
                request_times.popleft()
            if not request_times:
                del _sign_in_attempts[address]

        attempts = _sign_in_attempts.setdefault(client_address, deque())
        if len(attempts) >= SIGN_IN_MAX_ATTEMPTS:
            raise RateLimitError("Too many sign-in attempts. Please wait a minute and try again.")
        attempts.append(now)


def reset_sign_in_attempts() -> None:
    with _sign_in_lock:
        _sign_in_attempts.clear()


@router.post("/sign-in", response_model=SignInResponse)
async def sign_in(
    request: Request,
    sign_in_data: SignInRequest,
    db: Session = Depends(get_db),
):
    """Authenticate and set the access token cookie."""
    check_sign_in_rate_limit(get_client_address(request))

    user = db.query(User).filter(User.email == sign_in_data.email.lower()).first()
    if not user or not user.is_active or not verify_password(sign_in_data.password, user.password_hash):
        raise AuthenticationError("Invalid email or password.")

    user.last_login = datetime.utcnow()
    db.commit()

    try:
        access_token = create_access_token(data={"sub": user.id, "email": user.email})
    except ValueError as e:
        # SECRET_KEY is missing
        logging.error(f"Failed to create tokens: {str(e)}")
        raise ServiceError("Server configuration error. Please contact support.")

    settings = get_settings()
    response = SignInResponse(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=(Role.ADMIN if user.is_admin else Role.USER).value,
        access_token=access_token,
    )
    json_response = JSONResponse(content=response.model_dump())
    json_response.set_cookie(
        key=settings.auth_cookie_name,
        value=access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    logging.info(f"User {user.email} signed in")
    return json_response


@router.post("/sign-out", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def sign_out():
    """Clear the access token cookie. No authentication required."""
    settings = get_settings()
    response = JSONResponse(content={"message": "Signed out successfully."})
    response.delete_cookie(
        key=settings.auth_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    return response
