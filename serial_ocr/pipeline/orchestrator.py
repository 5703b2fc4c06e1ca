"""
Extraction Pipeline Module.

This module provides the ExtractionPipeline class that runs one photo
of an invoice, warranty card or receipt through the full flow:

    Idle -> Recognizing -> Extracting -> Done
                 |             |
                 +-> Failed <--+

Phases:
    1. Recognizing: decode the payload, then recognize text with the
       preferred provider (falling back to the other one once).
    2. Extracting: apply the rule catalogue and score the result.

Every call owns a fresh state machine; nothing is retained between
documents, so concurrent calls are independent.

Usage:
    pipeline = ExtractionPipeline(PipelineConfig.from_config())
    document = await pipeline.process(data_uri)
    form.fill(document.values())

Author: ML Engineering Team
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from config import get_config
from serial_ocr.extraction.confidence import ConfidenceAggregator
from serial_ocr.extraction.extracted_document import ExtractedDocument
from serial_ocr.extraction.extractor import FieldExtractor
from serial_ocr.input_handler.image_payload import ImagePayload
from serial_ocr.ocr_engine.cloud_vision import CloudVisionProvider
from serial_ocr.ocr_engine.local_backend import LocalRecognitionProvider
from serial_ocr.ocr_engine.selector import ProviderSelector
from serial_ocr.utils.exceptions import ExtractionFailedError, ImageDecodeError, RuleDefinitionError
from serial_ocr.utils.logger import get_logger
from .options import PipelineConfig

# Initialize module logger
logger = get_logger(__name__)

ImageInput = Union[ImagePayload, bytes, bytearray, str]
StateCallback = Callable[['PipelineState', 'PipelineState'], Any]


class PipelineState(Enum):
    """States of one pipeline call."""
    IDLE = "idle"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PipelineState.IDLE: {PipelineState.RECOGNIZING},
    PipelineState.RECOGNIZING: {PipelineState.EXTRACTING, PipelineState.FAILED},
    PipelineState.EXTRACTING: {PipelineState.DONE, PipelineState.FAILED},
    PipelineState.DONE: set(),
    PipelineState.FAILED: set(),
}


class PipelineRun:
    """
    State machine of a single ``process()`` call.

    Attributes:
        state: Current state
        history: States visited, starting with IDLE
    """

    def __init__(self, on_state_change: Optional[StateCallback] = None) -> None:
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]
        self._on_state_change = on_state_change

    def transition(self, new_state: PipelineState) -> None:
        """
        Move to ``new_state``.

        Raises:
            RuntimeError: If the transition is not allowed from the
                current state.
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid pipeline transition: {self.state.value} -> {new_state.value}")

        old_state, self.state = self.state, new_state
        self.history.append(new_state)
        logger.debug(f"Pipeline state: {old_state.value} -> {new_state.value}")

        if self._on_state_change is not None:
            try:
                self._on_state_change(old_state, new_state)
            except Exception as e:
                logger.warning(f"State change callback failed: {e}")

    def fail(self) -> None:
        """Move to FAILED unless the run already ended."""
        if PipelineState.FAILED in ALLOWED_TRANSITIONS[self.state]:
            self.transition(PipelineState.FAILED)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]


class ExtractionPipeline:
    """
    Image-to-fields pipeline.

    Attributes:
        config: Pipeline options
        selector: Provider selection and fallback
        extractor: Rule-based field extractor
        aggregator: Confidence scoring
        low_confidence_threshold: Threshold used when logging fields to review

    Example:
        >>> pipeline = ExtractionPipeline(PipelineConfig(preferred_provider="local"))
        >>> document = pipeline.process_sync(png_bytes)
        >>> document.values()
        {'serialNumber': 'ABC-123', 'costPrice': 1500000.0}
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        selector: Optional[ProviderSelector] = None,
        extractor: Optional[FieldExtractor] = None,
        aggregator: Optional[ConfidenceAggregator] = None,
        on_state_change: Optional[StateCallback] = None
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            config: Pipeline options. If None, PipelineConfig defaults
                are used; call ``PipelineConfig.from_config()`` to read
                them from settings.
            selector: Provider selector. If None, one is built from
                ``config`` with the cloud and local providers.
            extractor: Field extractor. If None, uses the default catalogue.
            aggregator: Confidence aggregator. If None, uses config weights.
            on_state_change: Called with (old, new) on every state change.
        """
        self.config = config or PipelineConfig()
        self.selector = selector or self._build_selector(self.config)
        self.extractor = extractor or FieldExtractor()
        self.aggregator = aggregator or ConfidenceAggregator()
        self.on_state_change = on_state_change
        self.low_confidence_threshold = get_config("extraction.low_confidence_threshold", 0.6)

        logger.info(f"ExtractionPipeline initialized: {self.config!r}")

    @staticmethod
    def _build_selector(config: PipelineConfig) -> ProviderSelector:
        cloud = CloudVisionProvider(config.cloud_credential, language_hints=config.language_hints)
        local = LocalRecognitionProvider(language_hints=config.language_hints)
        return ProviderSelector(
            cloud=cloud,
            local=local,
            preferred=config.preferred_provider,
            timeout=config.timeout
        )

    async def process(
        self,
        image: ImageInput,
        mime_type: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> ExtractedDocument:
        """
        Extract structured fields from one image.

        Args:
            image: ImagePayload, raw bytes, base64 string or data URI.
            mime_type: MIME type of bytes/base64 input, if known.
            timeout: Per-attempt recognition timeout in seconds;
                defaults to the configured ``timeout_ms``.

        Returns:
            ExtractedDocument with the fields found (possibly none).

        Raises:
            ExtractionFailedError: Undecodable payload, no text, no
                provider available, or a malformed rule. The original
                error is attached as ``cause``.
            asyncio.CancelledError: The caller abandoned the call; no
                document is produced.
        """
        run = PipelineRun(self.on_state_change)
        start_time = time.time()
        run.transition(PipelineState.RECOGNIZING)

        try:
            payload = self._decode(image, mime_type)
            text = await self.selector.select_and_recognize(payload, timeout=timeout)

            run.transition(PipelineState.EXTRACTING)
            document = self._extract(text, start_time)

        except ExtractionFailedError as e:
            logger.error(f"{e} (cause: {e.cause!r})")
            run.fail()
            raise
        except asyncio.CancelledError:
            logger.warning(f"Extraction cancelled while {run.state.value}")
            run.fail()
            raise
        except Exception:
            run.fail()
            raise

        run.transition(PipelineState.DONE)
        return document

    def _decode(self, image: ImageInput, mime_type: Optional[str]) -> ImagePayload:
        """Decode and validate the payload before any provider is called."""
        try:
            payload = ImagePayload.coerce(image, mime_type).validate()
        except ImageDecodeError as e:
            raise ExtractionFailedError(
                "image payload could not be decoded",
                cause=e,
                stage="decoding"
            ) from e

        logger.debug(f"Decoded {payload!r}")
        return payload

    def _extract(self, text, start_time: float) -> ExtractedDocument:
        """Apply the rule catalogue and score the result."""
        try:
            fields = self.extractor.extract(text)
        except RuleDefinitionError as e:
            raise ExtractionFailedError(
                "malformed extraction rule",
                cause=e,
                stage="extracting"
            ) from e

        document = ExtractedDocument(
            fields=fields,
            document_confidence=self.aggregator.aggregate(text, fields),
            field_confidences=self.aggregator.field_confidences(text, fields),
            recognition_confidence=text.overall_confidence,
            provider=text.provider,
            processing_time=time.time() - start_time
        )

        low_confidence = document.low_confidence_fields(self.low_confidence_threshold)
        logger.info(
            f"Extracted {len(document)} field(s) via '{document.provider}', "
            f"confidence: {document.document_confidence:.2f}, "
            f"time: {document.processing_time:.2f}s"
        )
        if low_confidence:
            logger.info(f"Fields to review: {', '.join(str(f) for f in low_confidence)}")
        return document

    def process_sync(
        self,
        image: ImageInput,
        mime_type: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> ExtractedDocument:
        """Run ``process`` to completion from synchronous code."""
        return asyncio.run(self.process(image, mime_type=mime_type, timeout=timeout))

    async def process_many(
        self,
        images: Iterable[ImageInput],
        timeout: Optional[float] = None
    ) -> List[Union[ExtractedDocument, ExtractionFailedError]]:
        """
        Process several images concurrently.

        Each image is an independent call; one failing does not affect
        the others.

        Returns:
            Per input, in order, the document or the ExtractionFailedError.

        Raises:
            Any error other than ExtractionFailedError raised by a call.
        """
        results = await asyncio.gather(
            *(self.process(image, timeout=timeout) for image in images),
            return_exceptions=True
        )

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, ExtractionFailedError):
                raise result

        failed = sum(isinstance(r, ExtractionFailedError) for r in results)
        logger.info(f"Batch complete: {len(results) - failed} succeeded, {failed} failed")
        return list(results)

    def close(self) -> None:
        """Release provider resources such as pooled HTTP connections."""
        self.selector.close()

    def __enter__(self) -> 'ExtractionPipeline':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_pipeline_info(self) -> Dict[str, Any]:
        """
        Get information about the pipeline configuration.

        Returns:
            Dictionary with provider and extractor details.
        """
        return {
            'config': repr(self.config),
            'providers': self.selector.get_provider_info(),
            'rules': self.extractor.get_rule_info(),
            'weights': {
                'recognition': self.aggregator.recognition_weight,
                'match': self.aggregator.match_weight
            }
        }
