"""Centralized error handling for the API.

This module provides standardized error codes, exception-to-response mapping,
and a global exception handler for FastAPI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
    HTTP_504_GATEWAY_TIMEOUT,
)

from mediagrab.core.logging import get_request_id
from mediagrab.core.metrics import MetricsCollector
from mediagrab.providers.exceptions import (
    AvailabilityError,
    EmptyOrMissingFileError,
    ExtractionError,
    ExtractorNotFoundError,
    InvalidAudioFormatError,
    InvalidRequestError,
    InvalidURLError,
    MalformedOutputError,
    MediaError,
    MediaFetchError,
    NonZeroExitError,
    OperationTimeoutError,
)

logger = structlog.get_logger(__name__)


class ErrorCode:
    """Standardized error codes for API responses."""

    # Client Errors (4xx)
    INVALID_URL = "INVALID_URL"
    INVALID_FORMAT = "INVALID_FORMAT"

    # Upstream failures (5xx)
    MALFORMED_OUTPUT = "MALFORMED_OUTPUT"
    EXTRACTOR_FAILED = "EXTRACTOR_FAILED"
    EMPTY_DOWNLOAD = "EMPTY_DOWNLOAD"
    FETCH_FAILED = "FETCH_FAILED"
    TIMEOUT = "TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Service Unavailable (503)
    COMPONENT_UNAVAILABLE = "COMPONENT_UNAVAILABLE"


# Error code to HTTP status code mapping
ERROR_CODE_TO_STATUS: Dict[str, int] = {
    ErrorCode.INVALID_URL: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_FORMAT: HTTP_400_BAD_REQUEST,
    ErrorCode.MALFORMED_OUTPUT: HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTRACTOR_FAILED: HTTP_502_BAD_GATEWAY,
    ErrorCode.EMPTY_DOWNLOAD: HTTP_502_BAD_GATEWAY,
    ErrorCode.FETCH_FAILED: HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTRACTION_FAILED: HTTP_502_BAD_GATEWAY,
    ErrorCode.TIMEOUT: HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.INTERNAL_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.COMPONENT_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
}


# User-friendly suggestions for error resolution
ERROR_SUGGESTIONS: Dict[str, str] = {
    ErrorCode.INVALID_URL: "Provide a full http(s) URL in the 'url' query parameter",
    ErrorCode.INVALID_FORMAT: "Use one of the supported audio formats, e.g. mp3 or m4a",
    ErrorCode.MALFORMED_OUTPUT: (
        "The extractor could not read this URL. Check that the site is supported "
        "and the video is public"
    ),
    ErrorCode.EXTRACTOR_FAILED: "The extractor reported an error. Check server logs for details",
    ErrorCode.EMPTY_DOWNLOAD: "The download produced no data. Try another format or URL",
    ErrorCode.FETCH_FAILED: "The media file could not be fetched from its origin server",
    ErrorCode.TIMEOUT: "The operation took too long. Try a shorter video or try again later",
    ErrorCode.EXTRACTION_FAILED: "Extraction failed. Check server logs for details",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Contact administrator if the issue persists",
    ErrorCode.COMPONENT_UNAVAILABLE: "A required system component is unavailable. Check /health for status",
}


# Exception type to error code mapping
# Order matters: subclasses must come before their base classes
EXCEPTION_TO_ERROR_CODE: Dict[Type[Exception], str] = {
    InvalidURLError: ErrorCode.INVALID_URL,
    InvalidAudioFormatError: ErrorCode.INVALID_FORMAT,
    InvalidRequestError: ErrorCode.INVALID_URL,
    ExtractorNotFoundError: ErrorCode.COMPONENT_UNAVAILABLE,
    MalformedOutputError: ErrorCode.MALFORMED_OUTPUT,
    NonZeroExitError: ErrorCode.EXTRACTOR_FAILED,
    EmptyOrMissingFileError: ErrorCode.EMPTY_DOWNLOAD,
    ExtractionError: ErrorCode.EXTRACTION_FAILED,
    OperationTimeoutError: ErrorCode.TIMEOUT,
    MediaFetchError: ErrorCode.FETCH_FAILED,
    AvailabilityError: ErrorCode.COMPONENT_UNAVAILABLE,
    # MediaError must be last (after its subclasses)
    MediaError: ErrorCode.INTERNAL_ERROR,
}


class APIError(Exception):
    """Structured API error that can be converted to ErrorDetail response."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """Initialize an API error.

        Args:
            error_code: Machine-readable error code from ErrorCode class.
            message: Human-readable error message.
            details: Optional additional details about the error.
            suggestion: Optional suggestion for resolution. If not provided,
                        the default suggestion for the error code is used.
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_SUGGESTIONS.get(error_code)
        super().__init__(message)


def _split_message(exc: Exception) -> "tuple[str, Optional[str]]":
    """First line is the message; captured tool output goes to details."""
    text = str(exc)
    message, _, rest = text.partition("\n")
    return message, rest or None


def map_exception_to_api_error(exc: Exception) -> APIError:
    """Map engine exceptions to APIError.

    Dictionary order ensures subclasses are checked before their base classes.
    """
    for exc_type, error_code in EXCEPTION_TO_ERROR_CODE.items():
        if isinstance(exc, exc_type):
            message, details = _split_message(exc)
            return APIError(error_code, message, details=details)
    return APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


def _build_error_response(
    error_code: str,
    message: str,
    details: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a standardized error response dictionary matching ErrorDetail."""
    request_id = get_request_id()
    timestamp = datetime.now(timezone.utc).isoformat()

    response: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": timestamp,
    }

    if details:
        response["details"] = details
    if request_id:
        response["request_id"] = request_id
    if suggestion:
        response["suggestion"] = suggestion

    return response


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for FastAPI.

    Engine errors (MediaError) become standardized ErrorDetail responses
    with their mapped HTTP status; anything else is a generic 500.
    """
    if isinstance(exc, MediaError):
        api_error = map_exception_to_api_error(exc)
        status_code = ERROR_CODE_TO_STATUS.get(api_error.error_code, HTTP_500_INTERNAL_SERVER_ERROR)
        error_code = api_error.error_code
        response = _build_error_response(
            error_code=api_error.error_code,
            message=api_error.message,
            details=api_error.details,
            suggestion=api_error.suggestion,
        )
        logger.warning(
            "api_error",
            error_code=api_error.error_code,
            message=api_error.message,
            path=request.url.path,
        )

    else:
        # Unexpected error - log with full traceback
        status_code = HTTP_500_INTERNAL_SERVER_ERROR
        error_code = ErrorCode.INTERNAL_ERROR
        response = _build_error_response(
            error_code=error_code,
            message="An unexpected error occurred",
            suggestion=ERROR_SUGGESTIONS.get(error_code),
        )
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=exc,
        )

    MetricsCollector.record_error(error_code, _endpoint(request))
    return JSONResponse(status_code=status_code, content=response)


def _endpoint(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "/unmatched"

