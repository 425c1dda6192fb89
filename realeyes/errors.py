"""
Error taxonomy for the intake service.

Every error carries the HTTP status it is reported with and, when known,
the content hash of the image the request was about so clients can
reconcile retried requests.
"""

from typing import Optional


class IntakeError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, image_hash: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.image_hash = image_hash
        self.details = details

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.status_code >= 500:
            body["details"] = self.details or self.message
        elif self.details:
            body["details"] = self.details
        if self.image_hash:
            body["imageHash"] = self.image_hash
        return body


class ValidationError(IntakeError):
    """Bad input shape or values."""
    status_code = 400


class PayloadTooLargeError(ValidationError):
    status_code = 413


class UnsupportedTypeError(IntakeError):
    """File type is not in the allow-list."""
    status_code = 400


class AuthError(IntakeError):
    """An identity was presented but could not be verified."""
    status_code = 401


class DecodeError(IntakeError):
    """The buffer could not be decoded as an image."""
    status_code = 400


class NotFoundError(IntakeError):
    status_code = 404


class ConflictError(IntakeError):
    """A uniqueness or state precondition was lost to a concurrent writer."""
    status_code = 409


class StorageError(IntakeError):
    """Record or blob store unavailable. Safe for the caller to retry."""
    status_code = 500
    retryable = True


class IntegrityError(IntakeError):
    """Blob read-back did not match the bytes that were written."""
    status_code = 500
