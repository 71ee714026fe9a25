"""Custom application exceptions."""

from typing import Any

import httpx


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Local validation error, tied to a form field when one is known."""

    def __init__(self, message: str = "Validation error", field: str | None = None):
        """Initialize with 422 status code."""
        self.field = field
        super().__init__(message, status_code=422)


class ServerErrorException(AppException):
    """The remote API failed with a 5xx status."""

    def __init__(self, message: str = "Error interno del servidor", status_code: int = 500):
        """Initialize with the upstream 5xx status code."""
        super().__init__(message, status_code=status_code)


class UnexpectedResponseException(AppException):
    """Non-2xx status the client has no specific interpretation for."""

    def __init__(self, message: str = "Unexpected response", status_code: int = 502):
        """Initialize with the upstream status code."""
        super().__init__(message, status_code=status_code)


class NetworkException(AppException):
    """The remote API could not be reached."""

    def __init__(self, message: str = "No se pudo conectar con el servidor"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class SessionExpiredException(UnauthorizedException):
    """Token refresh failed; the operator must log in again."""

    def __init__(self, message: str = "Session expired"):
        """Initialize with 401 status code."""
        super().__init__(message)


class TransitionNotAllowedException(AppException):
    """Status transition rejected by the local guard."""

    def __init__(self, current: str, target: str):
        """Initialize with 409 status code."""
        self.current = current
        self.target = target
        super().__init__(f"Transition {current} -> {target} is not allowed", status_code=409)


class FrozenAppointmentException(AppException):
    """The appointment is in a terminal status and cannot be edited."""

    def __init__(self, appointment_id: int):
        """Initialize with 409 status code."""
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} is frozen", status_code=409)


def extract_error_message(response: httpx.Response) -> str:
    """
    Read the error message from a remote error body.

    Args:
        response: Remote API response

    Returns:
        The ``error``, ``message`` or ``detail`` value, or an empty string
    """
    try:
        body: Any = response.json()
    except ValueError:
        return ""

    if not isinstance(body, dict):
        return ""

    for key in ("error", "message", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def exception_from_response(response: httpx.Response) -> AppException:
    """
    Map a non-2xx remote response to the exception hierarchy.

    Args:
        response: Remote API response

    Returns:
        Exception instance matching the status code
    """
    message = extract_error_message(response)
    code = response.status_code

    if code == 400:
        return BadRequestException(message or "Bad request")
    if code == 401:
        return UnauthorizedException(message or "Unauthorized")
    if code == 403:
        return ForbiddenException(message or "Forbidden")
    if code == 404:
        return NotFoundException(message or "Resource not found")
    if code == 409:
        return ConflictException(message or "Conflict")
    if code >= 500:
        return ServerErrorException(message or "Error interno del servidor", status_code=code)
    return UnexpectedResponseException(message or f"Error {code}", status_code=code)


def raise_for_response(response: httpx.Response) -> httpx.Response:
    """Raise the mapped exception unless the response is 2xx."""
    if response.is_success:
        return response
    raise exception_from_response(response)
