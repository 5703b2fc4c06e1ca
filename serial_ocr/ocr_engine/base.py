"""
Recognition Provider Interface.

Every OCR backend implements ``recognize``. The selector does not catch
exceptions to decide on fallback; it calls ``try_recognize``, which folds
the two expected provider conditions (unavailable, no text) into a tagged
outcome and lets anything else propagate as a genuine failure.

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.utils.exceptions import NoTextFoundError, OCRError, ProviderUnavailableError
from .recognized_text import RecognizedText


class OutcomeStatus(Enum):
    """Result tag of a recognition attempt."""
    OK = "ok"
    UNAVAILABLE = "unavailable"
    NO_TEXT = "no_text"


@dataclass(frozen=True)
class RecognitionOutcome:
    """
    Tagged result of ``RecognitionProvider.try_recognize``.

    Attributes:
        status: Outcome tag
        provider: Provider name
        text: Recognized text (only for OK)
        error: The provider error (only for UNAVAILABLE / NO_TEXT)
    """
    status: OutcomeStatus
    provider: str
    text: Optional[RecognizedText] = None
    error: Optional[OCRError] = None

    @classmethod
    def ok(cls, provider: str, text: RecognizedText) -> 'RecognitionOutcome':
        return cls(OutcomeStatus.OK, provider, text=text)

    @classmethod
    def unavailable(cls, error: ProviderUnavailableError) -> 'RecognitionOutcome':
        return cls(OutcomeStatus.UNAVAILABLE, error.provider, error=error)

    @classmethod
    def no_text(cls, error: NoTextFoundError) -> 'RecognitionOutcome':
        return cls(OutcomeStatus.NO_TEXT, error.provider, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK


class RecognitionProvider(ABC):
    """
    Base class for text recognition backends.

    Subclasses must set ``name`` and implement ``recognize`` and
    ``is_configured``. Providers hold no per-call state, so one instance
    may serve concurrent calls.
    """

    name = "provider"

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Whether the provider can be attempted at all.

        Checked before any I/O; an unconfigured provider is skipped
        without a failed attempt.
        """

    @abstractmethod
    def recognize(self, image: ImagePayload, timeout: Optional[float] = None) -> RecognizedText:
        """
        Recognize text in an image.

        Args:
            image: Validated image payload.
            timeout: Optional bound in seconds for the backend call.

        Returns:
            RecognizedText with non-empty ``full_text``.

        Raises:
            ProviderUnavailableError: Provider cannot be reached, authenticated or loaded.
            NoTextFoundError: Recognition succeeded but found no text.
        """

    def try_recognize(self, image: ImagePayload, timeout: Optional[float] = None) -> RecognitionOutcome:
        """
        Recognize text, returning expected provider conditions as an outcome.

        A result with blank text counts as no text. Unexpected errors are
        not caught.
        """
        try:
            text = self.recognize(image, timeout=timeout)
        except ProviderUnavailableError as e:
            return RecognitionOutcome.unavailable(e)
        except NoTextFoundError as e:
            return RecognitionOutcome.no_text(e)

        if text.is_empty():
            return RecognitionOutcome.no_text(NoTextFoundError(self.name))
        return RecognitionOutcome.ok(self.name, text)

    def close(self) -> None:
        """Release resources held by the provider."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(configured={self.is_configured()})"
