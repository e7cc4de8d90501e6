"""Error taxonomy shared by every route.

Each error carries the HTTP status it maps to and a client-safe message.
The handlers in ``src/app.py`` render them as ``{"message": ...}``.
"""

from typing import Dict, Optional


class ServiceError(Exception):
    """Base class for errors that translate to a client-facing response."""
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_content(self) -> dict:
        return {"message": self.message}


class ValidationError(ServiceError):
    """Malformed or missing input. Carries per-field messages."""
    status_code = 400
    default_message = "Invalid submission."

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            if len(self.errors) == 1:
                message = next(iter(self.errors.values()))
            else:
                message = "Please correct the highlighted fields."
        super().__init__(message)

    def to_content(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class AuthenticationError(ServiceError):
    status_code = 401
    default_message = "Authentication required."


class AuthorizationError(ServiceError):
    status_code = 403
    default_message = "You do not have access to this resource."


class RateLimitError(ServiceError):
    status_code = 429
    default_message = "Too many submissions. Please try again later."


class AttachmentError(ServiceError):
    status_code = 400
    default_message = "Invalid file type."


class VerificationError(ServiceError):
    """Bot check rejected the interaction token."""
    status_code = 400
    default_message = "Verification failed."


class VerificationUnavailable(ServiceError):
    """Bot-check provider could not be reached or answered garbage."""
    status_code = 500
    default_message = "Verification service unavailable. Please try again later."


class StorageError(ServiceError):
    status_code = 500
    default_message = "Submission failed. Please try again later."


class NotificationError(ServiceError):
    """Email send failure. Logged by the dispatcher, never sent to clients."""
    status_code = 500
    default_message = "Failed to send email."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found."


class PayloadTooLargeError(ServiceError):
    status_code = 413
    default_message = "Upload too large."
