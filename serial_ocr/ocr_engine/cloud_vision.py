"""
Cloud Vision OCR Provider.

Sends the base64-encoded image to a hosted text-detection endpoint
(Google Cloud Vision ``images:annotate``) and maps the text annotations
into a RecognizedText.

Response mapping:
    - textAnnotations[0].description -> full_text
    - textAnnotations[1:] -> tokens, polygon -> enclosing box

Precision limitation: the text-detection response carries no per-token
confidence, so every token and the document get the fixed
``ocr.cloud.fixed_confidence`` value.

Author: ML Engineering Team
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from config import get_config
from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.utils.exceptions import (
    NoTextFoundError,
    OCRProcessingError,
    ProviderUnavailableError
)
from serial_ocr.utils.logger import get_logger
from .base import RecognitionProvider
from .recognized_text import BoundingBox, RecognizedText, RecognizedToken

logger = get_logger(__name__)

# HTTP statuses meaning "cannot reach / authenticate right now"
UNAVAILABLE_STATUSES = {401, 403, 408, 429}

# google.rpc.Code values in a per-image error object
UNAVAILABLE_RPC_CODES = {7, 14, 16}  # PERMISSION_DENIED, UNAVAILABLE, UNAUTHENTICATED


class CloudVisionProvider(RecognitionProvider):
    """
    Cloud-hosted text detection provider.

    Attributes:
        credential: API key, or None when the provider is not configured
        endpoint: images:annotate URL
        language_hints: Language codes sent as imageContext hints
        fixed_confidence: Confidence assigned to every token

    Example:
        >>> provider = CloudVisionProvider(credential="AIza...", language_hints=["vi", "en"])
        >>> text = provider.recognize(payload, timeout=10)
    """

    name = "cloud"

    def __init__(
        self,
        credential: Optional[str],
        language_hints: Sequence[str] = ("vi", "en"),
        endpoint: Optional[str] = None,
        fixed_confidence: Optional[float] = None,
        session_factory: Callable[[], requests.Session] = requests.Session
    ) -> None:
        """
        Initialize the provider.

        Args:
            credential: API key for the endpoint.
            language_hints: Language codes for recognition.
            endpoint: Override of the annotate URL.
            fixed_confidence: Override of the fixed token confidence.
            session_factory: Creates the HTTP session of each worker thread.
        """
        self.credential = credential.strip() if credential else None
        self.language_hints = list(language_hints)
        self.endpoint = endpoint or get_config(
            "ocr.cloud.endpoint",
            "https://vision.googleapis.com/v1/images:annotate"
        )
        self.feature = get_config("ocr.cloud.feature", "TEXT_DETECTION")
        if fixed_confidence is None:
            fixed_confidence = get_config("ocr.cloud.fixed_confidence", 0.95)
        self.fixed_confidence = float(fixed_confidence)

        # requests.Session is not documented as thread-safe; keep one per thread
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

        logger.debug(
            f"CloudVisionProvider initialized (configured={self.is_configured()}, "
            f"hints={self.language_hints})"
        )

    def is_configured(self) -> bool:
        return bool(self.credential)

    def _session(self) -> requests.Session:
        session = getattr(self._local, 'session', None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        """Close the HTTP sessions opened by every worker thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
            self._local = threading.local()

        for session in sessions:
            session.close()
        if sessions:
            logger.debug(f"Closed {len(sessions)} cloud OCR session(s)")

    def _build_request(self, image: ImagePayload) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            'image': {'content': image.to_base64()},
            'features': [{'type': self.feature}],
        }
        if self.language_hints:
            request['imageContext'] = {'languageHints': self.language_hints}
        return {'requests': [request]}

    def recognize(self, image: ImagePayload, timeout: Optional[float] = None) -> RecognizedText:
        """
        Recognize text through the cloud endpoint.

        Raises:
            ProviderUnavailableError: No credential, connection failure,
                timeout, auth rejection, throttling or server error.
            NoTextFoundError: No text annotations in the response.
            OCRProcessingError: Any other HTTP error or a malformed response.
        """
        if not self.is_configured():
            raise ProviderUnavailableError(self.name, "no credential configured")

        start_time = time.time()

        try:
            response = self._session().post(
                self.endpoint,
                params={'key': self.credential},
                json=self._build_request(image),
                timeout=timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ProviderUnavailableError(self.name, f"request failed: {e}") from e

        if response.status_code in UNAVAILABLE_STATUSES or response.status_code >= 500:
            raise ProviderUnavailableError(self.name, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise OCRProcessingError(self.name, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise OCRProcessingError(self.name, f"response is not JSON: {e}") from e

        result = self._parse_response(body)
        processing_time = time.time() - start_time

        text = RecognizedText(
            full_text=result['full_text'],
            tokens=result['tokens'],
            overall_confidence=self.fixed_confidence,
            provider=self.name,
            language='+'.join(self.language_hints),
            processing_time=processing_time,
            metadata={'locale': result['locale']}
        )

        logger.info(
            f"Cloud OCR completed: {text.token_count} tokens, "
            f"{len(text.full_text)} chars ({processing_time:.2f}s)"
        )
        return text

    def _parse_response(self, body: Any) -> Dict[str, Any]:
        """
        Map an images:annotate response body.

        Returns:
            Dictionary with ``full_text``, ``tokens`` and ``locale``.
        """
        try:
            first = body['responses'][0]
        except (KeyError, IndexError, TypeError) as e:
            raise OCRProcessingError(self.name, f"malformed response: {e}") from e

        if not isinstance(first, dict):
            raise OCRProcessingError(self.name, "malformed response: entry is not an object")

        error = first.get('error')
        if error:
            code = error.get('code') if isinstance(error, dict) else None
            reason = error.get('message') if isinstance(error, dict) else str(error)
            if code in UNAVAILABLE_RPC_CODES:
                raise ProviderUnavailableError(self.name, reason)
            raise OCRProcessingError(self.name, reason)

        annotations = first.get('textAnnotations') or []
        if not annotations:
            raise NoTextFoundError(self.name)

        try:
            full_text = annotations[0].get('description', '') or ''
            locale = annotations[0].get('locale', '')
            tokens = self._parse_tokens(annotations[1:])
        except (AttributeError, TypeError, ValueError) as e:
            raise OCRProcessingError(self.name, f"malformed annotation: {e}") from e

        if not full_text.strip():
            raise NoTextFoundError(self.name)

        return {'full_text': full_text.strip('\n'), 'tokens': tokens, 'locale': locale}

    def _parse_tokens(self, annotations: List[Dict[str, Any]]) -> List[RecognizedToken]:
        tokens = []
        for annotation in annotations:
            text = annotation.get('description', '')
            if not text or not text.strip():
                continue

            # Zero coordinates are omitted from the JSON vertices
            vertices = (annotation.get('boundingPoly') or {}).get('vertices', [])
            points = [(int(v.get('x', 0)), int(v.get('y', 0))) for v in vertices]

            tokens.append(RecognizedToken(
                text=text,
                confidence=self.fixed_confidence,
                bounding_box=BoundingBox.from_points(points)
            ))
        return tokens
