"""
Centralized error handling for the card scanner.

This module provides the exception taxonomy and error handling utilities used
across the recognition pipeline. Only camera acquisition errors are meant to
reach the user as blocking errors; everything on the recognition path is
logged here and recovered locally by the capture loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class CardScannerError(Exception):
    """Base exception class for all card scanner errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(CardScannerError):
    """Raised when there are configuration or environment variable issues."""
    pass


class CaptureError(CardScannerError):
    """Raised when camera capture or frame processing fails."""
    pass


class AcquisitionCause(str, Enum):
    """Why the camera stream could not be acquired."""

    DENIED = "denied"
    NOT_FOUND = "not_found"
    BUSY = "busy"
    UNKNOWN = "unknown"


ACQUISITION_MESSAGES: Dict[AcquisitionCause, str] = {
    AcquisitionCause.DENIED: "Camera access was denied. Grant camera permission and try again.",
    AcquisitionCause.NOT_FOUND: "No camera found on this device.",
    AcquisitionCause.BUSY: "Camera is in use by another app.",
    AcquisitionCause.UNKNOWN: "Could not access camera. Please try again.",
}


class CameraAcquisitionError(CaptureError):
    """Raised when the camera stream cannot be opened."""

    def __init__(
        self,
        cause: AcquisitionCause,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or ACQUISITION_MESSAGES[cause], details)
        self.cause = cause

    @property
    def user_message(self) -> str:
        return ACQUISITION_MESSAGES[self.cause]


class RecognitionError(CardScannerError):
    """Raised when the text recognition engine fails on a call."""
    pass


class RecognitionCancelledError(RecognitionError):
    """Raised for a queued recognition call when the service is torn down."""
    pass


class CatalogError(CardScannerError):
    """Raised when catalog data is missing or malformed."""
    pass


class StateTransitionError(CardScannerError):
    """Raised when the scanner is asked for a transition its state forbids."""
    pass


@dataclass
class ErrorContext:
    """Context information for error reporting."""
    operation: str
    module: str
    function: str
    input_data: Optional[Dict[str, Any]] = None
    timestamp: Optional[str] = None


def handle_error(
    error: Exception,
    context: ErrorContext,
    logger: logging.Logger,
    reraise: bool = True,
    default_return: Any = None
) -> Any:
    """
    Centralized error handling with logging and optional recovery.

    Args:
        error: The exception that occurred
        context: Context information about where the error occurred
        logger: Logger instance to use for error reporting
        reraise: Whether to re-raise the exception after logging
        default_return: Value to return if not re-raising

    Returns:
        The default_return value if not re-raising

    Raises:
        The original exception if reraise is True
    """
    error_msg = f"Error in {context.module}.{context.function} during {context.operation}"

    if isinstance(error, CardScannerError):
        error_msg += f": {error.message}"
        if error.details:
            error_msg += f" | Details: {error.details}"
    else:
        error_msg += f": {str(error)}"

    logger.error(
        error_msg,
        extra={
            "error_type": type(error).__name__,
            "operation": context.operation,
            "error_module": context.module,
            "error_function": context.function,
            "input_data": context.input_data,
            "timestamp": context.timestamp,
        },
        exc_info=error,
    )

    if reraise:
        raise error

    return default_return


def safe_execute(
    func,
    *args,
    context: ErrorContext,
    logger: logging.Logger,
    default_return: Any = None,
    **kwargs
) -> Any:
    """
    Safely execute a function with error handling and logging.

    Returns:
        Function result or default_return on error
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        return handle_error(e, context, logger, reraise=False, default_return=default_return)


def validate_required_fields(data: Dict[str, Any], required_fields: list, context: ErrorContext) -> None:
    """
    Validate that required fields are present in data.

    Raises:
        CatalogError: If required fields are missing
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None]

    if missing_fields:
        raise CatalogError(
            f"Missing required fields: {missing_fields}",
            details={
                "missing_fields": missing_fields,
                "available_fields": list(data.keys()),
                "operation": context.operation,
            }
        )

