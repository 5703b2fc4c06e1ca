"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout the serial OCR
pipeline. Using specific exceptions allows the provider selector to tell
recoverable provider conditions apart from genuine failures, and gives the
caller one terminal error type to catch.

Exception Hierarchy:
    SerialOCRError (base)
    ├── ConfigurationError
    ├── InputError
    │   └── ImageDecodeError
    ├── OCRError
    │   ├── ProviderUnavailableError
    │   ├── NoTextFoundError
    │   └── OCRProcessingError
    ├── ExtractionError
    │   └── RuleDefinitionError
    └── ExtractionFailedError
"""

from typing import Optional


USER_MESSAGE = "Could not process the image, please retry or enter data manually."
USER_MESSAGE_VI = "Không thể xử lý ảnh. Vui lòng thử lại hoặc nhập thông tin thủ công."


class SerialOCRError(Exception):
    """
    Base exception for all serial OCR errors.

    All custom exceptions in this system inherit from this class,
    allowing for easy catching of all system-specific errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SerialOCRError):
    """Raised when a pipeline option or settings value is invalid."""

    def __init__(self, option: str, value, reason: str = None):
        message = f"Invalid configuration for '{option}'"
        details = {"option": option, "value": value, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(SerialOCRError):
    """Base exception for image payload errors."""
    pass


class ImageDecodeError(InputError):
    """
    Raised when an image payload cannot be decoded.

    Example:
        >>> raise ImageDecodeError("invalid base64 data", mime_type="image/png")
    """

    def __init__(self, reason: str, mime_type: str = None):
        message = f"Cannot decode image payload: {reason}"
        details = {"reason": reason, "mime_type": mime_type}
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(SerialOCRError):
    """Base exception for recognition provider errors."""
    pass


class ProviderUnavailableError(OCRError):
    """Raised when a provider cannot be reached, authenticated or loaded."""

    def __init__(self, provider: str, reason: str = None):
        message = f"OCR provider not available: {provider}"
        details = {"provider": provider, "reason": reason}
        self.provider = provider
        super().__init__(message, details)


class NoTextFoundError(OCRError):
    """Raised when recognition succeeds but yields no text."""

    def __init__(self, provider: str):
        message = f"No text found in image by provider: {provider}"
        details = {"provider": provider}
        self.provider = provider
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when a provider fails in an unexpected way."""

    def __init__(self, provider: str, reason: str = None):
        message = f"OCR processing failed in provider: {provider}"
        details = {"provider": provider, "reason": reason}
        self.provider = provider
        super().__init__(message, details)


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionError(SerialOCRError):
    """Base exception for field extraction errors."""
    pass


class RuleDefinitionError(ExtractionError):
    """Raised when a field extraction rule is malformed."""

    def __init__(self, field: str, reason: str = None):
        message = f"Malformed extraction rule for field '{field}'"
        details = {"field": field, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class ExtractionFailedError(SerialOCRError):
    """
    Terminal error for one pipeline call.

    Always raised with ``raise ... from cause`` so the originating error
    (provider, decode or rule error) stays attached for logging. The
    ``user_message`` is what the data-entry form shows to the operator.

    Attributes:
        cause: The originating exception.
        stage: Pipeline stage where the failure happened.
        user_message: Operator-facing message.
        user_message_vi: The same message in Vietnamese.
    """

    user_message = USER_MESSAGE
    user_message_vi = USER_MESSAGE_VI

    def __init__(
        self,
        reason: str,
        cause: Optional[BaseException] = None,
        stage: str = None,
        details: dict = None
    ):
        message = f"Extraction failed: {reason}"
        merged = {"stage": stage, "cause": type(cause).__name__ if cause else None}
        merged.update(details or {})
        self.cause = cause
        self.stage = stage
        super().__init__(message, merged)


# Export all exceptions
__all__ = [
    'USER_MESSAGE',
    'USER_MESSAGE_VI',
    'SerialOCRError',
    'ConfigurationError',
    'InputError',
    'ImageDecodeError',
    'OCRError',
    'ProviderUnavailableError',
    'NoTextFoundError',
    'OCRProcessingError',
    'ExtractionError',
    'RuleDefinitionError',
    'ExtractionFailedError',
]
