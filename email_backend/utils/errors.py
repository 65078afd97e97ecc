"""
Centralized error hierarchy for the mail backend.

This module provides a base exception class and the specific error types
raised by providers, façades and the auth layer, along with helpers that map
them to HTTP status codes and user-friendly messages for the outer API layer.
"""
from typing import Optional, Union


class EmailBackendError(Exception):
    """
    Base exception class for all mail backend errors.

    Subclasses set ``status_code`` to the HTTP status the API layer should
    answer with.
    """
    status_code: int = 500


class NotFoundError(EmailBackendError):
    """Raised when a message, attachment, draft or account is absent."""
    status_code = 404


class UnauthorizedError(EmailBackendError):
    """Raised on ownership mismatches and invalid credentials or tokens."""
    status_code = 401


class BadRequestError(EmailBackendError):
    """Raised for invalid input: missing file, empty recipients, bad ids."""
    status_code = 400


class UnavailableError(EmailBackendError):
    """Raised when the chosen provider or collaborator cannot serve the operation."""
    status_code = 503


class UpstreamError(EmailBackendError):
    """
    Raised when a remote API call fails.

    Carries the upstream HTTP status when it could be determined.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def status_code(self) -> int:
        if self.status and 400 <= self.status < 600:
            return self.status
        return 502


class OAuthError(EmailBackendError):
    """Raised when OAuth authentication or token operations fail."""
    status_code = 401


class TokenRefreshError(OAuthError):
    """Raised when OAuth token refresh fails."""
    pass


class DecryptionError(EmailBackendError):
    """Raised when stored secrets cannot be decrypted."""
    pass


def http_status_for(exc: Exception) -> int:
    """
    Map an exception to the HTTP status code the API layer should return.

    Args:
        exc: Any exception raised by the service layer.

    Returns:
        The HTTP status code (500 for anything outside the hierarchy).
    """
    if isinstance(exc, EmailBackendError):
        return exc.status_code
    return 500


def human_friendly_message(exc: Union[EmailBackendError, Exception]) -> str:
    """
    Convert technical error exceptions to user-friendly messages.

    Args:
        exc: The exception to convert.

    Returns:
        A user-friendly error message string.
    """
    error_msg = str(exc) if str(exc) else ""

    if isinstance(exc, TokenRefreshError):
        return (
            "Your Google session has expired. Please sign in with Google again "
            "to keep using your Gmail mailbox."
        )
    elif isinstance(exc, OAuthError):
        return "Google authentication failed. Please try signing in again."
    elif isinstance(exc, NotFoundError):
        return error_msg or "The requested item could not be found."
    elif isinstance(exc, UnauthorizedError):
        return error_msg or "You are not allowed to access this item."
    elif isinstance(exc, BadRequestError):
        return f"Invalid request: {error_msg}" if error_msg else "Invalid request."
    elif isinstance(exc, UpstreamError):
        return (
            "The mail provider returned an error. Please try again. "
            "If the problem continues, the service may be temporarily unavailable."
        )
    elif isinstance(exc, UnavailableError):
        return error_msg or "This operation is not available for your mailbox."
    elif isinstance(exc, DecryptionError):
        return (
            "Stored credentials could not be decrypted. "
            "Please reconnect your Google account."
        )
    elif isinstance(exc, EmailBackendError):
        return f"An error occurred: {error_msg}" if error_msg else "An unexpected error occurred."

    elif isinstance(exc, ConnectionError):
        return "Could not connect to the server. Please try again."
    elif isinstance(exc, TimeoutError):
        return "The operation timed out. Please try again."
    elif isinstance(exc, ValueError):
        return f"Invalid input: {error_msg}"

    return f"An error occurred: {error_msg or 'Unknown error'}"
