"""
Local Tesseract OCR Provider.

This module runs Tesseract (pytesseract) in-process over the image with
the bilingual Vietnamese/English language pack.

Features:
    - Word-level bounding boxes and confidences
    - Line grouping by (block, paragraph, line) to keep newlines
    - Lazy engine loading on first use, guarded by a lock
    - Timeout passed through to the Tesseract subprocess

Requirements:
    - Tesseract OCR installed on the system, with the "vie" and "eng" data
    - pytesseract Python package

Author: ML Engineering Team
"""

import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config import get_config
from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.input_handler.image_processor import ImageProcessor
from serial_ocr.utils.exceptions import NoTextFoundError, ProviderUnavailableError
from serial_ocr.utils.logger import get_logger
from .base import RecognitionProvider
from .recognized_text import BoundingBox, RecognizedText, RecognizedToken, mean_confidence

logger = get_logger(__name__)

DEFAULT_LANGUAGE_CODES = {'vi': 'vie', 'en': 'eng'}

# Tesseract messages for traineddata it cannot load
MISSING_LANGUAGE_MARKERS = ('failed loading language', 'error opening data file')


class LocalRecognitionProvider(RecognitionProvider):
    """
    Tesseract-based local recognition provider.

    The pytesseract module and the Tesseract binary are only probed on the
    first ``recognize`` call. Concurrent first calls load the engine once.

    Attributes:
        language: Tesseract language string (e.g., "vie+eng")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)

    Example:
        >>> provider = LocalRecognitionProvider(language_hints=["vi", "en"])
        >>> text = provider.recognize(payload, timeout=30)
        >>> print(text.full_text)
    """

    name = "local"

    def __init__(
        self,
        language_hints: Sequence[str] = ("vi", "en"),
        engine: Any = None,
        image_processor: Optional[ImageProcessor] = None
    ) -> None:
        """
        Initialize the provider with configuration.

        Args:
            language_hints: Language codes for recognition.
            engine: Pre-loaded pytesseract-compatible module. When None the
                real pytesseract is imported on first use.
            image_processor: Image preparation step.
        """
        language_codes = get_config("ocr.local.language_codes", DEFAULT_LANGUAGE_CODES)
        self.language = self._to_tesseract_language(language_hints, language_codes)
        self.psm = get_config("ocr.local.psm", 3)
        self.oem = get_config("ocr.local.oem", 3)
        self.extra_config = get_config("ocr.local.config", "")
        self.image_processor = image_processor or ImageProcessor()

        self._engine = engine
        self._engine_error: Optional[str] = None
        self._engine_lock = threading.Lock()

        logger.debug(
            f"LocalRecognitionProvider initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    @staticmethod
    def _to_tesseract_language(hints: Sequence[str], codes: Dict[str, str]) -> str:
        """Map ISO language hints to a Tesseract "vie+eng" string."""
        mapped = []
        for hint in hints:
            code = codes.get(hint, hint)
            if code not in mapped:
                mapped.append(code)
        return '+'.join(mapped) or 'eng'

    def is_configured(self) -> bool:
        # Availability of the binary is only known after the lazy load
        return True

    def _load_engine(self) -> Any:
        """
        Import pytesseract and probe the Tesseract binary, once.

        Raises:
            ProviderUnavailableError: If pytesseract or Tesseract is missing.
        """
        if self._engine is not None:
            return self._engine

        with self._engine_lock:
            if self._engine is not None:
                return self._engine
            if self._engine_error is not None:
                raise ProviderUnavailableError(self.name, self._engine_error)

            try:
                import pytesseract
                version = pytesseract.get_tesseract_version()
            except ImportError:
                self._engine_error = "pytesseract not installed (pip install pytesseract)"
                raise ProviderUnavailableError(self.name, self._engine_error)
            except Exception as e:
                # pytesseract raises its own TesseractNotFoundError / OSError here
                self._engine_error = f"Tesseract OCR not installed or not in PATH: {e}"
                raise ProviderUnavailableError(self.name, self._engine_error) from e

            logger.info(f"Tesseract engine loaded (version {version})")
            self._engine = pytesseract
            return self._engine

    def _build_config(self) -> str:
        """Build the Tesseract command-line configuration string."""
        config_parts = [f"--psm {self.psm}", f"--oem {self.oem}"]
        if self.extra_config:
            config_parts.append(self.extra_config)
        return ' '.join(config_parts)

    def recognize(self, image: ImagePayload, timeout: Optional[float] = None) -> RecognizedText:
        """
        Recognize text with Tesseract.

        Raises:
            ProviderUnavailableError: Engine or language data missing, or
                Tesseract timed out.
            NoTextFoundError: No words recognized.
        """
        engine = self._load_engine()
        pil_image = self.image_processor.prepare(image)
        image_width, image_height = pil_image.size

        start_time = time.time()
        config = self._build_config()
        logger.debug(f"Running Tesseract OCR (lang={self.language}, config: {config})")

        try:
            data = engine.image_to_data(
                pil_image,
                lang=self.language,
                config=config,
                timeout=timeout or 0,
                output_type=engine.Output.DICT
            )
        except RuntimeError as e:
            # pytesseract signals its subprocess timeout and TesseractError with RuntimeError
            error_text = str(e).lower()
            if 'timeout' in error_text:
                raise ProviderUnavailableError(self.name, f"Tesseract timed out after {timeout}s") from e
            if any(marker in error_text for marker in MISSING_LANGUAGE_MARKERS):
                raise ProviderUnavailableError(
                    self.name, f"Tesseract language data missing for '{self.language}'"
                ) from e
            raise

        tokens, lines = self._parse_tesseract_output(data)
        processing_time = time.time() - start_time

        result = RecognizedText(
            full_text='\n'.join(lines),
            tokens=tokens,
            overall_confidence=mean_confidence([t.confidence for t in tokens]),
            provider=self.name,
            language=self.language,
            processing_time=processing_time,
            image_width=image_width,
            image_height=image_height,
            metadata={'psm': self.psm, 'oem': self.oem}
        )
        if result.is_empty():
            raise NoTextFoundError(self.name)

        logger.info(
            f"Local OCR completed: {result.token_count} tokens, {len(lines)} lines, "
            f"avg confidence: {result.overall_confidence:.2f} ({processing_time:.2f}s)"
        )
        return result

    def _parse_tesseract_output(
        self,
        data: Dict[str, List]
    ) -> Tuple[List[RecognizedToken], List[str]]:
        """
        Parse image_to_data output into tokens and text lines.

        Args:
            data: Dictionary output from image_to_data.

        Returns:
            Tuple of (tokens, line texts in reading order).
        """
        tokens = []
        line_groups: Dict[Tuple[int, int, int], List[str]] = {}

        for i in range(len(data['text'])):
            text = (data['text'][i] or '').strip()
            if not text:
                continue

            # Tesseract reports -1 for non-word elements
            conf = float(data['conf'][i])
            if conf < 0:
                continue

            width = int(data['width'][i])
            height = int(data['height'][i])
            if width <= 0 or height <= 0:
                continue

            tokens.append(RecognizedToken(
                text=text,
                confidence=min(conf, 100.0) / 100.0,
                bounding_box=BoundingBox(int(data['left'][i]), int(data['top'][i]), width, height)
            ))

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            line_groups.setdefault(key, []).append(text)

        # Dict preserves Tesseract's reading order
        lines = [' '.join(words) for words in line_groups.values()]
        return tokens, lines
