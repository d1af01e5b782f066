"""Error taxonomy for the digital asset client.

Network-facing functions raise a DigitalAssetError subclass carrying a message
that is safe to show to the user as-is. The MCP tool layer maps the error code
to its response instead of parsing the message.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    AUTH_MISSING = "auth_missing"
    NETWORK = "network"
    HTTP = "http"
    MALFORMED_RESPONSE = "malformed_response"
    ARTIFACT_LOAD = "artifact_load"
    VALIDATION = "validation"
    BACKEND = "backend"


class DigitalAssetError(Exception):
    """Base error with a user-visible message"""

    code = ErrorCode.BACKEND
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code.value, "retryable": self.retryable}


class AuthMissingError(DigitalAssetError):
    code = ErrorCode.AUTH_MISSING

    def __init__(self, message: str = "Authentication token not found. Please set your authentication token first."):
        super().__init__(message)


class NetworkFailureError(DigitalAssetError):
    code = ErrorCode.NETWORK
    retryable = True


class HttpError(DigitalAssetError):
    """Non-2xx response from the backend"""

    code = ErrorCode.HTTP

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    @property
    def requires_reauth(self) -> bool:
        return self.status == 401

    @property
    def forbidden(self) -> bool:
        return self.status == 403

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["status"] = self.status
        if self.requires_reauth:
            payload["reauthenticate"] = True
        return payload


class MalformedResponseError(DigitalAssetError):
    code = ErrorCode.MALFORMED_RESPONSE


class ArtifactLoadError(DigitalAssetError):
    code = ErrorCode.ARTIFACT_LOAD

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.url:
            payload["url"] = self.url
        return payload


class ValidationError(DigitalAssetError):
    code = ErrorCode.VALIDATION


def http_error_for_status(status: int, detail: str, subject: str, identifier: Optional[str] = None) -> HttpError:
    """Build the HttpError for a failed response.

    Args:
        status: HTTP status code
        detail: Message extracted from the response body
        subject: What the request was doing, e.g. "generate QR codes for this asset"
        identifier: Asset identifier used in the request (for 404 messages)
    """
    if status == 401:
        message = "Authentication failed. Please check your token and try again."
    elif status == 403:
        message = f"Access denied. You do not have permission to {subject}."
    elif status == 404:
        if identifier:
            message = f'Asset with ID "{identifier}" not found. Please verify the asset ID.'
        else:
            message = "The requested resource was not found. It may have been deleted or moved."
    elif status == 400:
        message = f"Invalid request: {detail}"
    elif status == 429:
        message = "Too many requests. Please wait a moment and try again."
    elif status == 500:
        message = "Server error. Please try again later."
    else:
        message = f"API Error ({status}): {detail}"
    return HttpError(status, message)


__all__ = [
    "ArtifactLoadError",
    "AuthMissingError",
    "DigitalAssetError",
    "ErrorCode",
    "HttpError",
    "MalformedResponseError",
    "NetworkFailureError",
    "ValidationError",
    "http_error_for_status",
]
