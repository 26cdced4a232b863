"""
Mirakl error taxonomy.

Every failure coming back from the Mirakl API is turned into one of the
classes below by :func:`classify_error`, so all client operations report
errors with the same wording.
"""
from typing import Any, Optional

import httpx


class MiraklError(Exception):
    """Base class for failures reported by the Mirakl API"""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        remote_message: Optional[str] = None,
        retry_after: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.operation = operation
        self.remote_message = remote_message
        self.retry_after = retry_after

    @property
    def kind(self) -> str:
        return type(self).__name__


class MiraklAuthenticationError(MiraklError):
    pass


class MiraklAccessDeniedError(MiraklError):
    pass


class MiraklNotFoundError(MiraklError):
    pass


class MiraklRateLimitError(MiraklError):
    retryable = True


class MiraklBadRequestError(MiraklError):
    pass


class MiraklValidationError(MiraklError):
    pass


class MiraklServerError(MiraklError):
    retryable = True


class MiraklUnclassifiedError(MiraklError):
    pass


class MiraklConfigurationError(MiraklError):
    """Credentials are missing, nothing was sent"""


class MiraklOperationError(MiraklError):
    """Raised by a client operation once the classified error is final"""

    def __init__(self, error: MiraklError):
        super().__init__(
            error.message,
            status_code=error.status_code,
            operation=error.operation,
            remote_message=error.remote_message,
            retry_after=error.retry_after,
        )
        self.error = error

    @property
    def kind(self) -> str:
        return self.error.kind


class OfferSyncError(MiraklOperationError):
    pass


class OrderAcceptError(MiraklOperationError):
    pass


class ShipmentCreationError(MiraklOperationError):
    pass


def extract_remote_message(response: httpx.Response) -> Optional[str]:
    """Pull the human readable message out of a Mirakl error body"""
    try:
        data: Any = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None

    if isinstance(data, dict):
        message = data.get("message") or data.get("error_message")
        if message:
            return str(message)
    return None


def classify_error(
    operation: str,
    *,
    status_code: Optional[int] = None,
    remote_message: Optional[str] = None,
    retry_after: Optional[str] = None,
) -> MiraklError:
    """Build the taxonomy error for a failed Mirakl call"""
    kwargs = {
        "status_code": status_code,
        "operation": operation,
        "remote_message": remote_message,
        "retry_after": retry_after,
    }

    if status_code == 401:
        return MiraklAuthenticationError(
            f"Mirakl authentication failed: Invalid API key for {operation}", **kwargs
        )
    if status_code == 403:
        return MiraklAccessDeniedError(
            f"Mirakl access denied: Check shop permissions for {operation}", **kwargs
        )
    if status_code == 404:
        return MiraklNotFoundError(
            f"Mirakl resource not found: {remote_message or operation}", **kwargs
        )
    if status_code == 429:
        return MiraklRateLimitError(
            f"Mirakl rate limit exceeded for {operation}. Try again later.", **kwargs
        )
    if status_code == 400:
        return MiraklBadRequestError(
            f"Mirakl bad request ({operation}): {remote_message or 'Invalid data format'}", **kwargs
        )
    if status_code == 422:
        return MiraklValidationError(
            f"Mirakl validation error ({operation}): {remote_message or 'Data validation failed'}",
            **kwargs,
        )
    if status_code is not None and 500 <= status_code < 600:
        return MiraklServerError(
            f"Mirakl server error ({operation}): {remote_message or 'Service temporarily unavailable'}",
            **kwargs,
        )
    return MiraklUnclassifiedError(f"Mirakl {operation} failed: {remote_message}", **kwargs)


def classify_response(response: httpx.Response, operation: str) -> MiraklError:
    return classify_error(
        operation,
        status_code=response.status_code,
        remote_message=extract_remote_message(response),
        retry_after=response.headers.get("retry-after"),
    )
